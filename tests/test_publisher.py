"""Tests for the publish strategies, run against a scripted GitRunner."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple
from unittest.mock import MagicMock

import pytest

from config import PublishConfig, PublishStrategy, RemoteConfig
from git_runner import GitCommandError, GitRunner
from publisher import (PublishError, PublishResult, SquashPublisher,
                       WorktreeMergePublisher, create_publisher)

Call = Tuple[str, Tuple[str, ...], Optional[str]]


class ScriptedGit:
    """Records git invocations and answers queries from a small script."""

    def __init__(
        self,
        *,
        target_present: bool = True,
        has_changes: bool = True,
        existing_branches: Tuple[str, ...] = (),
        fast_forward: bool = True,
        related: bool = True,
        leftover_branches: Tuple[str, ...] = (),
        fail_on: Optional[Tuple[str, ...]] = None,
    ) -> None:
        self.target_present = target_present
        self.has_changes = has_changes
        self.existing_branches = set(existing_branches)
        self.fast_forward = fast_forward
        self.related = related
        self.leftover_branches = set(leftover_branches)
        self.fail_on = fail_on
        self.calls: List[Call] = []

    def _record(self, kind: str, args: Tuple[str, ...], cwd: Optional[str]) -> None:
        self.calls.append((kind, args, cwd))
        if self.fail_on is not None and args[: len(self.fail_on)] == self.fail_on:
            raise GitCommandError(['git', *args], 1)

    def run(self, *args: str, cwd: Optional[str] = None) -> None:
        self._record('run', args, cwd)

    def output(self, *args: str, cwd: Optional[str] = None) -> str:
        self._record('output', args, cwd)
        if args[0] == 'ls-remote':
            return 'abc123\trefs/heads/main' if self.target_present else ''
        if args[0] == 'commit-tree':
            return 'deadbeef'
        return ''

    def succeeds(self, *args: str, cwd: Optional[str] = None) -> bool:
        self._record('succeeds', args, cwd)
        if args[:2] == ('diff', '--cached'):
            return not self.has_changes
        if args[0] == 'rev-parse':
            return args[-1].replace('refs/heads/', '') in self.existing_branches
        if args[:2] == ('merge', '--ff-only'):
            return self.fast_forward
        if args[0] == 'merge-base':
            return self.related
        if args[:2] == ('config', '--get'):
            return args[2].split('.')[1] in self.leftover_branches
        return True

    def commands(self) -> List[Tuple[str, ...]]:
        return [args for _kind, args, _cwd in self.calls]

    def index_of(self, *prefix: str) -> int:
        for i, args in enumerate(self.commands()):
            if args[: len(prefix)] == prefix:
                return i
        raise AssertionError(f'{prefix} was not run')

    def ran(self, *prefix: str) -> bool:
        return any(args[: len(prefix)] == prefix for args in self.commands())

    def pushes(self) -> List[Tuple[str, ...]]:
        return [args for args in self.commands() if args[0] == 'push']


def _make_publisher(tmp_path: Path, strategy: PublishStrategy, git: ScriptedGit, confirm=None):
    publish = PublishConfig(strategy=strategy, worktree_dir=str(tmp_path / 'wt'))
    return create_publisher(RemoteConfig(), publish, git=git, confirm=confirm)


def test_create_publisher_selects_strategy(tmp_path: Path) -> None:
    git = ScriptedGit()
    assert isinstance(_make_publisher(tmp_path, PublishStrategy.MERGE, git), WorktreeMergePublisher)
    assert isinstance(_make_publisher(tmp_path, PublishStrategy.SQUASH, git), SquashPublisher)


def test_merge_publish_runs_steps_in_order(tmp_path: Path) -> None:
    """The merge strategy copies origin/main through a --no-ff merge and pushes it."""
    git = ScriptedGit()
    publisher = _make_publisher(tmp_path, PublishStrategy.MERGE, git)
    worktree = str(tmp_path / 'wt')

    result = publisher.publish('Fix typo', 'fix-typo')

    assert result is PublishResult.PUBLISHED
    order = [
        git.index_of('fetch', 'github', 'main'),
        git.index_of('fetch', 'origin', 'main'),
        git.index_of('worktree', 'add', '--force', '-B', 'labtohub-main', worktree, 'github/main'),
        git.index_of('switch', '-C', 'fix-typo'),
        git.index_of('restore', '--source', 'origin/main'),
        git.index_of('clean', '-fd'),
        git.index_of('commit', '-m', 'Fix typo'),
        git.index_of('merge', '--no-ff', '--no-edit', 'fix-typo', '-m', 'Fix typo'),
        git.index_of('push', 'github', 'labtohub-main:refs/heads/main'),
        git.index_of('branch', '-D', 'fix-typo'),
    ]
    assert order == sorted(order)
    assert ('run', ('push', 'github', 'labtohub-main:refs/heads/main'), worktree) in git.calls


def test_merge_publish_without_changes_skips_push(tmp_path: Path) -> None:
    """A second run with nothing new is a no-op on the target."""
    git = ScriptedGit(has_changes=False)
    publisher = _make_publisher(tmp_path, PublishStrategy.MERGE, git)

    result = publisher.publish('Sync', 'sync')

    assert result is PublishResult.NO_CHANGES
    assert git.pushes() == []
    assert not git.ran('commit')
    assert not git.ran('merge')
    assert git.ran('worktree', 'remove', '--force')
    assert git.ran('branch', '-D', 'sync')


def test_failed_step_stops_sequence_and_cleans_up(tmp_path: Path) -> None:
    """A failing merge aborts before pushing, but the worktree and branch go away."""
    git = ScriptedGit(fail_on=('merge', '--no-ff'))
    publisher = _make_publisher(tmp_path, PublishStrategy.MERGE, git)

    with pytest.raises(GitCommandError):
        publisher.publish('Fix typo', 'fix-typo')

    assert git.pushes() == []
    failed_at = git.index_of('merge', '--no-ff')
    removed_at = max(
        i for i, args in enumerate(git.commands()) if args[:2] == ('worktree', 'remove')
    )
    assert removed_at > failed_at
    assert git.index_of('branch', '-D', 'fix-typo') > removed_at


def test_failed_fetch_creates_nothing(tmp_path: Path) -> None:
    git = ScriptedGit(fail_on=('fetch', 'origin'))
    publisher = _make_publisher(tmp_path, PublishStrategy.MERGE, git)

    with pytest.raises(GitCommandError):
        publisher.publish('Fix typo', 'fix-typo')

    assert not git.ran('worktree', 'add')
    assert git.pushes() == []


def test_existing_branch_is_not_clobbered(tmp_path: Path) -> None:
    """A message whose slug names an existing local branch is refused."""
    git = ScriptedGit(existing_branches=('main',))
    publisher = _make_publisher(tmp_path, PublishStrategy.MERGE, git)

    with pytest.raises(PublishError):
        publisher.publish('main', 'main')

    assert not git.ran('switch', '-C', 'main')
    assert not git.ran('branch', '-D', 'main')
    assert git.pushes() == []
    assert git.ran('worktree', 'remove', '--force')


@pytest.mark.parametrize('strategy', list(PublishStrategy))
def test_first_publish_force_pushes_snapshot(tmp_path: Path, strategy: PublishStrategy) -> None:
    """Without a target branch both strategies force-publish the source tree."""
    git = ScriptedGit(target_present=False)
    publisher = _make_publisher(tmp_path, strategy, git)

    result = publisher.publish('Initial import', 'initial-import')

    assert result is PublishResult.FORCE_PUBLISHED
    assert not git.ran('fetch', 'github')
    assert git.ran('commit-tree', '-m', 'Initial import', 'origin/main^{tree}')
    assert git.pushes() == [('push', '--force', 'github', 'deadbeef:refs/heads/main')]
    assert git.ran('branch', '--force', 'labtohub-main', 'deadbeef')
    assert not git.ran('worktree', 'add')


def test_squash_publish_fast_forwards_and_commits(tmp_path: Path) -> None:
    git = ScriptedGit(existing_branches=('labtohub-main',))
    confirm = MagicMock()
    publisher = _make_publisher(tmp_path, PublishStrategy.SQUASH, git, confirm)
    worktree = str(tmp_path / 'wt')

    result = publisher.publish('Release 1.2', 'release-1-2')

    assert result is PublishResult.PUBLISHED
    assert git.ran('worktree', 'add', '--force', worktree, 'labtohub-main')
    assert git.index_of('merge', '--ff-only', 'github/main') < git.index_of('commit', '-m')
    assert git.pushes() == [('push', 'github', 'labtohub-main:refs/heads/main')]
    confirm.assert_not_called()
    assert not git.ran('branch', '-D')


def test_squash_creates_publish_branch_from_target(tmp_path: Path) -> None:
    git = ScriptedGit()
    publisher = _make_publisher(tmp_path, PublishStrategy.SQUASH, git)
    worktree = str(tmp_path / 'wt')

    publisher.publish('Sync', 'sync')

    assert git.ran('worktree', 'add', '--force', '-b', 'labtohub-main', worktree, 'github/main')


def test_squash_divergence_reset_when_confirmed(tmp_path: Path) -> None:
    git = ScriptedGit(existing_branches=('labtohub-main',), fast_forward=False)
    confirm = MagicMock(return_value=True)
    publisher = _make_publisher(tmp_path, PublishStrategy.SQUASH, git, confirm)

    result = publisher.publish('Sync', 'sync')

    assert result is PublishResult.PUBLISHED
    confirm.assert_called_once()
    assert git.ran('reset', '--hard', 'github/main')
    assert git.pushes() == [('push', 'github', 'labtohub-main:refs/heads/main')]


def test_squash_divergence_force_publishes_when_declined(tmp_path: Path) -> None:
    """Keeping local history means only the target branch is force-updated."""
    git = ScriptedGit(existing_branches=('labtohub-main',), fast_forward=False, has_changes=False)
    confirm = MagicMock(return_value=False)
    publisher = _make_publisher(tmp_path, PublishStrategy.SQUASH, git, confirm)

    result = publisher.publish('Sync', 'sync')

    assert result is PublishResult.FORCE_PUBLISHED
    assert not git.ran('reset')
    assert git.pushes() == [('push', '--force', 'github', 'labtohub-main:refs/heads/main')]


def test_squash_unrelated_histories_force_publish_without_prompt(tmp_path: Path) -> None:
    """A target rewritten with foreign history is replaced by a snapshot."""
    git = ScriptedGit(existing_branches=('labtohub-main',), related=False)
    confirm = MagicMock(return_value=True)
    publisher = _make_publisher(tmp_path, PublishStrategy.SQUASH, git, confirm)

    result = publisher.publish('Sync', 'sync')

    assert result is PublishResult.FORCE_PUBLISHED
    confirm.assert_not_called()
    assert git.ran('merge-base', 'labtohub-main', 'github/main')
    assert not git.ran('worktree', 'add')
    assert not git.ran('reset')
    assert git.pushes() == [('push', '--force', 'github', 'deadbeef:refs/heads/main')]


def test_content_branch_is_marked_as_temporary(tmp_path: Path) -> None:
    git = ScriptedGit()
    publisher = _make_publisher(tmp_path, PublishStrategy.MERGE, git)

    publisher.publish('Fix typo', 'fix-typo')

    assert git.index_of('switch', '-C', 'fix-typo') < git.index_of(
        'config', 'branch.fix-typo.labtohub-content', 'true'
    )


def test_leftover_content_branch_is_reclaimed(tmp_path: Path) -> None:
    """A branch left by a killed run does not block the same message forever."""
    git = ScriptedGit(existing_branches=('fix-typo',), leftover_branches=('fix-typo',))
    publisher = _make_publisher(tmp_path, PublishStrategy.MERGE, git)

    result = publisher.publish('Fix typo', 'fix-typo')

    assert result is PublishResult.PUBLISHED
    assert git.index_of('branch', '-D', 'fix-typo') < git.index_of('switch', '-C', 'fix-typo')
    assert git.pushes() == [('push', 'github', 'labtohub-main:refs/heads/main')]


@pytest.mark.parametrize('strategy', list(PublishStrategy))
@pytest.mark.parametrize('target_present', [True, False])
def test_source_remote_is_never_pushed(
    tmp_path: Path, strategy: PublishStrategy, target_present: bool
) -> None:
    git = ScriptedGit(target_present=target_present, fast_forward=False)
    publisher = _make_publisher(tmp_path, strategy, git, confirm=lambda _p, _d: False)

    publisher.publish('Sync', 'sync')

    assert git.pushes()
    for push in git.pushes():
        assert 'origin' not in push
        assert push[-1].endswith(':refs/heads/main')


def test_stale_worktree_directory_is_removed(tmp_path: Path) -> None:
    """Leftovers of an interrupted run are cleared before a new worktree is added."""
    stale = tmp_path / 'wt'
    stale.mkdir()
    (stale / 'leftover.txt').write_text('x')

    git = MagicMock(spec=GitRunner)
    git.succeeds.return_value = False
    publisher = _make_publisher(tmp_path, PublishStrategy.MERGE, git)

    publisher.remove_existing_worktree()

    assert not stale.exists()
    git.succeeds.assert_any_call('worktree', 'prune')
