"""Async git command helpers."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Awaitable, Callable, Mapping, Optional, Sequence


class GitCommandError(RuntimeError):
    """Raised when a git invocation exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str) -> None:
        detail = stderr.strip() or f"exit status {returncode}"
        # Only the subcommand is reported; "-c" options can carry credentials.
        super().__init__(f"git {_subcommand(args)} failed: {detail}")
        self.returncode = returncode
        self.stderr = stderr


def _subcommand(args: Sequence[str]) -> str:
    remaining = list(args[1:]) if args and args[0] == "git" else list(args)
    while remaining:
        head = remaining.pop(0)
        if head == "-c":
            if remaining:
                remaining.pop(0)
            continue
        if not head.startswith("-"):
            return head
    return "<command>"


GitRunner = Callable[..., Awaitable[str]]


async def run_git(
    args: Sequence[str],
    *,
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """Run ``git`` with ``args`` and return stdout."""
    command = ["git", *args]
    merged_env = os.environ.copy()
    merged_env.setdefault("GIT_TERMINAL_PROMPT", "0")
    if env:
        merged_env.update(env)
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd) if cwd is not None else None,
            env=merged_env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:  # pragma: no cover - environment dependent
        raise GitCommandError(command, 127, "Unable to locate git executable") from exc
    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        raise GitCommandError(
            command, process.returncode or 1, stderr.decode("utf-8", errors="replace")
        )
    return stdout.decode("utf-8", errors="replace")


__all__ = ["GitCommandError", "GitRunner", "run_git"]
