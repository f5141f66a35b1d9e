"""Progress narrative and tables printed to the terminal."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import TextIO

from .models import Commit, ExtraIssue, IssueRef, Review

SUBJECT_LIMIT = 80


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


def _supports_color(stream: TextIO | None = None) -> bool:
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(stream, "isatty") or not stream.isatty():
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return True


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    """Apply color to text if terminal supports it."""
    if not _supports_color(stream):
        return text
    prefix = (Colors.BOLD if bold else "") + color
    return f"{prefix}{text}{Colors.RESET}"


def print_error(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stderr
    print(f"grr: {colorize('error', Colors.RED, bold=True, stream=stream)}: {message}", file=stream)


def print_warning(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stderr
    print(f"grr: {colorize('warning', Colors.YELLOW, bold=True, stream=stream)}: {message}", file=stream)


def print_issue(issue: IssueRef, title: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(f"Issue: {colorize(issue.name, Colors.CYAN, stream=stream)} {title}", file=stream)


def print_parenthetical(text: str, stream: TextIO | None = None) -> None:
    print(f"Parenthetical: {text}", file=stream or sys.stdout)


def print_extra_issues(extras: Sequence[ExtraIssue], stream: TextIO | None = None) -> None:
    if not extras:
        return
    stream = stream or sys.stdout
    print("Extra issues:", file=stream)
    for extra in extras:
        print(f"    {extra.issue.name} {extra.title}", file=stream)


def print_new_commits(commits: Sequence[Commit], stream: TextIO | None = None) -> None:
    """``commits`` is newest first."""
    stream = stream or sys.stdout
    print(f"New commits ({len(commits)}):", file=stream)
    for c in commits:
        print(f"    {c.sha[:7]} {c.subject}", file=stream)


def _truncate(text: str, limit: int = SUBJECT_LIMIT) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def _iso(created_on: int | None) -> str:
    if created_on is None:
        return "-"
    return (
        datetime.fromtimestamp(created_on, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def print_review_table(
    repo_name: str, reviews: Sequence[Review], stream: TextIO | None = None
) -> None:
    stream = stream or sys.stdout
    if not reviews:
        print(f"No outstanding code reviews for {repo_name}.", file=stream)
        return
    fmt = "{:<26}{:<27}{:<30}{}"
    print(colorize(fmt.format("CREATED", "URL", "AUTHOR", "SYNOPSIS"), Colors.BOLD, stream=stream), file=stream)
    for review in reviews:
        print(
            fmt.format(
                _iso(review.created_on),
                review.url,
                review.owner_email or "<unknown>",
                _truncate(review.subject),
            ),
            file=stream,
        )


__all__ = [
    "Colors",
    "colorize",
    "print_error",
    "print_extra_issues",
    "print_issue",
    "print_new_commits",
    "print_parenthetical",
    "print_review_table",
    "print_warning",
]
