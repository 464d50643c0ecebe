"""Parse terminal-style ``git ...`` input and run it against a repository."""

import shlex
from dataclasses import dataclass, field

from .refs import Attached
from .repository import RepoState, Repository, Result


@dataclass(frozen=True)
class ParseResult:
    """A parsed command.

    ``kind`` is one of ``commit``, ``checkout``, ``create_branch``,
    ``branch``, ``merge``, ``rebase``, ``rebase_continue``,
    ``rebase_abort``, ``cherry_pick``, ``reset``, ``add``, ``status``,
    ``log``, ``clear``, ``error`` or ``unknown``.
    """

    kind: str
    args: tuple[str, ...] = ()
    error: str | None = None

    def __bool__(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CommandOutput:
    ok: bool
    lines: tuple[str, ...] = ()
    result: Result | None = None
    parsed: ParseResult = field(default_factory=lambda: ParseResult("unknown"))


def parse_command(text: str) -> ParseResult:
    """Turn one line of terminal input into a ``ParseResult``."""
    trimmed = text.strip()
    if trimmed == "clear":
        return ParseResult("clear")
    if not trimmed.startswith("git "):
        return ParseResult("unknown", error=f"command not found: {trimmed}")

    try:
        words = shlex.split(trimmed[4:])
    except ValueError as e:
        return ParseResult("error", error=f"could not parse command: {e}")
    if not words:
        return ParseResult("unknown", error="usage: git <command> [<args>]")

    name, args = words[0], words[1:]
    if name == "log" and not args:
        return ParseResult("log")
    if name == "status" and not args:
        return ParseResult("status")
    if name == "branch" and not args:
        return ParseResult("branch")
    if name == "checkout":
        if len(args) == 2 and args[0] == "-b":
            return ParseResult("create_branch", (args[1],))
        if len(args) == 1 and not args[0].startswith("-"):
            return ParseResult("checkout", (args[0],))
        return ParseResult("error", error="usage: git checkout [-b] <target>")
    if name == "merge":
        if len(args) == 1:
            return ParseResult("merge", (args[0],))
        return ParseResult("error", error="Merge what? Please specify a branch.")
    if name == "rebase":
        if args == ["--continue"]:
            return ParseResult("rebase_continue")
        if args == ["--abort"]:
            return ParseResult("rebase_abort")
        if len(args) == 1 and not args[0].startswith("-"):
            return ParseResult("rebase", (args[0],))
        return ParseResult("error", error="usage: git rebase <branch> | --continue | --abort")
    if name == "cherry-pick":
        if len(args) == 1:
            return ParseResult("cherry_pick", (args[0],))
        return ParseResult("error", error="usage: git cherry-pick <commit>")
    if name == "add":
        if len(args) == 1:
            return ParseResult("add", (args[0],))
        return ParseResult("error", error="usage: git add <path> | .")
    if name == "commit":
        if len(args) == 2 and args[0] == "-m":
            return ParseResult("commit", (args[1],))
        return ParseResult("error", error="usage: git commit -m \"<message>\"")
    if name == "reset":
        if len(args) == 2 and args[0] in ("--soft", "--hard"):
            return ParseResult("reset", (args[0], args[1]))
        return ParseResult("error", error="usage: git reset --soft|--hard <target>")
    return ParseResult(
        "unknown", error=f"git: '{name}' is not a git command. See 'git --help'."
    )


def run_command(repo: Repository, text: str) -> CommandOutput:
    """Parse ``text`` and apply it to ``repo``."""
    parsed = parse_command(text)
    if parsed.error is not None:
        return CommandOutput(ok=False, lines=(parsed.error,), parsed=parsed)

    kind, args = parsed.kind, parsed.args
    if kind == "clear":
        return CommandOutput(ok=True, parsed=parsed)
    if kind == "log":
        lines = tuple(f"{c.short_id} {c.message}" for c in repo.log())
        return CommandOutput(ok=True, lines=lines, parsed=parsed)
    if kind == "branch":
        current = repo.current_branch
        lines = tuple(
            f"{'*' if name == current else ' '} {name}" for name in repo.refs.names()
        )
        return CommandOutput(ok=True, lines=lines, parsed=parsed)
    if kind == "status":
        return CommandOutput(ok=True, lines=_status_lines(repo), parsed=parsed)

    result = _dispatch(repo, kind, args)
    return CommandOutput(
        ok=result.ok, lines=_result_lines(result), result=result, parsed=parsed
    )


def _dispatch(repo: Repository, kind: str, args: tuple[str, ...]) -> Result:
    if kind == "commit":
        return repo.commit(args[0])
    if kind == "checkout":
        return repo.checkout(args[0])
    if kind == "create_branch":
        return repo.create_branch(args[0])
    if kind == "merge":
        return repo.merge(args[0])
    if kind == "rebase":
        return repo.rebase(args[0])
    if kind == "rebase_continue":
        return repo.rebase_continue()
    if kind == "rebase_abort":
        return repo.rebase_abort()
    if kind == "cherry_pick":
        return repo.cherry_pick(args[0])
    if kind == "reset":
        return repo.reset(args[0], args[1])
    if kind == "add":
        return repo.stage(args[0])
    raise ValueError(f"Unhandled command kind: {kind!r}")


def _result_lines(result: Result) -> tuple[str, ...]:
    if result.error is not None:
        if result.conflict is not None:
            return (
                f"CONFLICT (content): Merge conflict in {result.conflict.path}",
                "Resolve the conflict, then commit the result.",
            )
        return (f"error: {result.error}",)
    if result.commit is None:
        return ()
    state = result.state
    if result.strategy == "up_to_date":
        return ("Current branch is up to date.",)
    if result.strategy == "checkout":
        return (f"Switched to {_where(state)}",)
    commit = state.commit(result.commit)
    if commit is None:
        return ()
    return (f"[{_where(state)} {commit.short_id}] {commit.message}",)


def _where(state: RepoState) -> str:
    if isinstance(state.head, Attached):
        return state.head.branch
    return f"detached HEAD {state.head.commit[:7]}"


def _status_lines(repo: Repository) -> tuple[str, ...]:
    state = repo.state()
    status = repo.status()
    if state.current_branch is not None:
        lines = [f"On branch {state.current_branch}"]
    else:
        lines = [f"HEAD detached at {state.head_commit[:7]}"]
    if state.conflict is not None:
        lines.append(f"both modified: {state.conflict.path}")
    lines.extend(f"staged: {p}" for p in status.staged)
    lines.extend(f"modified: {p}" for p in status.modified)
    lines.extend(f"deleted: {p}" for p in status.deleted)
    lines.extend(f"untracked: {p}" for p in status.untracked)
    if status.clean and state.conflict is None:
        lines.append("nothing to commit, working tree clean")
    return tuple(lines)
