"""Repository factory function."""

from typing import Literal, Mapping

from .kv.memory import Memory
from .repository import DEFAULT_BRANCH, INITIAL_MESSAGE, Repository


def repository(
    storage: Literal["memory"] = "memory",
    *,
    default_branch: str = DEFAULT_BRANCH,
    initial_files: Mapping[str, str] | None = None,
    initial_message: str = INITIAL_MESSAGE,
) -> Repository:
    """Create a freshly initialised Repository with sensible defaults.

    Args:
        storage: Backend kind. Only ``"memory"`` is available.
        default_branch: Branch the root commit is created on
            (default ``"main"``).
        initial_files: Files of the root commit (default: a single
            ``README.md``).
        initial_message: Message of the root commit.

    Returns:
        A ``Repository`` with one root commit and HEAD attached to
        ``default_branch``.
    """
    if storage == "memory":
        backend = Memory()
    else:
        raise ValueError(f"Unknown storage: {storage!r}")

    return Repository(
        backend,
        default_branch=default_branch,
        initial_files=initial_files,
        initial_message=initial_message,
    )
