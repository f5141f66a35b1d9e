"""Subprocess plumbing for ``git`` and ``ssh``.

``run`` never raises for a nonzero exit: several callers need to inspect
the exit code (``git config`` uses 1 for "key not set"). ``check`` is the
strict variant. Nothing here retries.
"""

from __future__ import annotations

import shlex
import subprocess  # nosec B404 - grr drives git and ssh
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .errors import ExternalToolError
from .logging import get_logger


@dataclass(frozen=True)
class ProcessResult:
    argv: tuple[str, ...]
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Runner(Protocol):
    def run(self, argv: Sequence[str], *, echo: bool = False) -> ProcessResult: ...

    def check(self, argv: Sequence[str], *, echo: bool = False) -> ProcessResult: ...


def indent(text: str, indentation: str = "    ") -> str:
    return "\n".join(indentation + line for line in text.splitlines())


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def failure_message(result: ProcessResult) -> str:
    detail = (result.stderr or result.stdout).strip()
    msg = f'"{format_argv(result.argv)}" failed with exit status {result.exit_code}'
    return f"{msg}: {detail}" if detail else msg


class ProcessRunner:
    def __init__(self, cwd: str | Path | None = None) -> None:
        self.cwd = Path(cwd) if cwd is not None else None
        self.logger = get_logger()

    def run(self, argv: Sequence[str], *, echo: bool = False) -> ProcessResult:
        cmd = list(argv)
        if echo:
            print(indent("$ " + format_argv(cmd)))
        try:
            completed = subprocess.run(  # nosec B603 - argv lists only, no shell
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ExternalToolError(f"cannot run {cmd[0]!r}: {exc}", argv=cmd) from exc
        result = ProcessResult(
            argv=tuple(cmd),
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
        )
        self.logger.log_command(cmd, result.exit_code, result.stdout, result.stderr)
        if echo:
            if result.stdout.strip():
                print(indent(result.stdout.rstrip()))
            if result.stderr.strip():
                print(indent(result.stderr.rstrip()), file=sys.stderr)
        return result

    def check(self, argv: Sequence[str], *, echo: bool = False) -> ProcessResult:
        result = self.run(argv, echo=echo)
        if not result.ok:
            raise ExternalToolError(
                failure_message(result),
                argv=result.argv,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )
        return result


__all__ = ["ProcessResult", "ProcessRunner", "Runner", "failure_message", "format_argv", "indent"]
