"""Randomised operation sequences must keep the object graph consistent."""

import random

import pytest

from gitsim import History, Repository

BRANCHES = ["main", "feature", "fix"]
PATHS = ["a.txt", "b.txt", "c.txt"]


def _random_step(repo: Repository, rng: random.Random) -> None:
    state = repo.state()
    op = rng.choice(
        ["edit", "edit", "commit", "commit", "branch", "checkout", "merge",
         "rebase", "cherry_pick", "reset", "resolve", "abort"]
    )
    if op == "edit":
        repo.edit_file(rng.choice(PATHS), str(rng.randint(0, 3)))
        repo.stage(".")
    elif op == "commit":
        repo.commit(f"c{rng.randint(0, 10**6)}")
    elif op == "branch":
        repo.create_branch(rng.choice(BRANCHES))
    elif op == "checkout":
        repo.checkout(rng.choice(BRANCHES))
    elif op == "merge":
        repo.merge(rng.choice(BRANCHES))
    elif op == "rebase":
        repo.rebase(rng.choice(BRANCHES))
    elif op == "cherry_pick":
        repo.cherry_pick(rng.choice(state.commits).id)
    elif op == "reset":
        repo.reset(rng.choice(["soft", "hard"]), rng.choice(state.commits).id)
    elif op == "resolve":
        repo.resolve_conflict("resolved")
    elif op == "abort":
        repo.rebase_abort()
        repo.merge_abort()


def _check(repo: Repository) -> None:
    state = repo.state()
    ids = {c.id for c in state.commits}
    for commit in state.commits:
        assert set(commit.parent_ids) <= ids
        assert len(commit.parent_ids) <= 2
        expected = 1 + max(
            (state.commit(p).generation for p in commit.parent_ids), default=-1
        )
        assert commit.generation == expected
    assert set(state.branches.values()) <= ids
    assert state.head_commit in ids
    roots = [*state.branches.values(), state.head_commit]
    assert History(repo.objects).reachable_from(roots) <= ids


class TestRandomSequences:
    @pytest.mark.parametrize("seed", range(5))
    def test_graph_stays_consistent(self, seed):
        rng = random.Random(seed)
        repo = Repository()
        for _ in range(150):
            _random_step(repo, rng)
            _check(repo)

    @pytest.mark.parametrize("seed", range(3))
    def test_hard_reset_keeps_reachable_commits(self, seed):
        rng = random.Random(seed)
        repo = Repository()
        for _ in range(60):
            _random_step(repo, rng)
        if repo.state().detached:
            repo.checkout("main")
        target = rng.choice(repo.state().commits).id
        history = History(repo.objects)
        other_tips = [
            tip for name, tip in repo.state().branches.items()
            if name != repo.current_branch
        ]
        must_survive = history.reachable_from([*other_tips, target])
        result = repo.reset("hard", target)
        assert result
        remaining = {c.id for c in result.state.commits}
        assert must_survive <= remaining
        assert not (set(result.gc.dropped_commits) & must_survive)
