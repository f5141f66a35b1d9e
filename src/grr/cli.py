"""The ``grr`` command line.

Usage:
  grr [<options>] [<issue> [<extra-issue>...]]   create or update a CR
  grr -D [<issue>]                               delete the branch, switch to the main line
  grr -L                                         list outstanding CRs for this repo

Where <issue> is a Jira issue (``PROJ-123`` or its full URL) or a GitHub
issue (the number, ``owner/repo#num``, or its full URL).
"""

from __future__ import annotations

import argparse
import traceback
from collections.abc import Iterable, Sequence
from typing import Any

from . import __version__
from .config import GrrConfig
from .errors import CannotDeleteMainLine, GrrError, IssueConflictError
from .logging import get_logger
from .reconcile import SyncRequest, report, resolve_repo_name
from .runtime import Services, build_services, execute_command, prepare_config
from .ux import print_error, print_review_table

_MAX_HELP_WIDTH = 100

_EPILOG = """\
examples:
  grr TOOLS-123      start or update a branch and CR for this ticket
  grr                update the current CR (using the cached ticket)
  grr -a TOOLS-124   also reference TOOLS-124 in the commit message
  grr -D             all done: delete the branch and switch back to the main line
"""


class _HelpFormatter(argparse.RawDescriptionHelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="grr",
        description="Opinionated hand-holding of code review (CR) mechanics in Gerrit.",
        epilog=_EPILOG,
        formatter_class=_HelpFormatter,
    )
    p.add_argument("issue", nargs="?", help="Jira or GitHub issue for this branch")
    p.add_argument(
        "extra_issues",
        nargs="*",
        metavar="extra-issue",
        help="Additional issues to reference in the commit message",
    )
    p.add_argument("--version", action="version", version=f"grr {__version__}")
    p.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose debug logging on stderr (env: GRR_LOG_JSON=1 for JSON lines)",
    )
    p.add_argument(
        "-p",
        "--parenthetical",
        help='Add a parenthetical comment to the commit message, e.g. "fix a typo"',
    )
    p.add_argument(
        "-u",
        "--update",
        action="store_true",
        help="Re-fetch cached issue info, e.g. after the issue title changed",
    )
    p.add_argument(
        "-a",
        "--add-extra-issues",
        action="append",
        default=[],
        metavar="ISSUES",
        help="Comma-separated extra issues to add",
    )
    p.add_argument(
        "-r",
        "--remove-extra-issues",
        action="append",
        default=[],
        metavar="ISSUES",
        help="Comma-separated extra issues to remove",
    )
    mode = p.add_mutually_exclusive_group()
    mode.add_argument(
        "-D",
        "--delete",
        action="store_true",
        help="Delete the local branch used for working with the CR and switch back "
        "to the main line",
    )
    mode.add_argument(
        "-L", "--list", action="store_true", help="List outstanding CRs for this repo"
    )
    return p


def _split_issue_args(values: Iterable[str]) -> list[str]:
    out: list[str] = []
    for value in values:
        out.extend(part.strip() for part in value.split(",") if part.strip())
    return out


def _cmd_sync(services: Services, args: argparse.Namespace) -> int:
    request = SyncRequest(
        issue_arg=args.issue,
        extra_issue_args=list(args.extra_issues),
        add_extra_issue_args=_split_issue_args(args.add_extra_issues),
        remove_extra_issue_args=_split_issue_args(args.remove_extra_issues),
        parenthetical=args.parenthetical,
        update=args.update,
    )
    result = services.cr_sync().sync(request)
    report(result)
    return 0


def _cmd_delete(services: Services, args: argparse.Namespace) -> int:
    branch = services.git.current_branch()
    if branch == services.config.main_line:
        raise CannotDeleteMainLine(f"cannot grr -D on branch {branch}")
    if args.issue:
        repo_name = resolve_repo_name(services.git)
        issue = services.resolver(repo_name).resolve(args.issue)
        cached = services.store.get_issue(branch)
        if cached and cached != issue.id:
            raise IssueConflictError(
                f'issue conflict: "{issue.id}" does not match the stored issue '
                f"({cached}) for the current branch ({branch})"
            )
    services.lifecycle.teardown(branch)
    return 0


def _cmd_list(services: Services, args: argparse.Namespace) -> int:
    repo_name = resolve_repo_name(services.git)
    reviews = services.gerrit.list_open_reviews(repo_name)
    print_review_table(repo_name, reviews)
    return 0


def _build_handlers(services: Services, args: argparse.Namespace) -> dict[str, Any]:
    return {
        "delete": lambda: _cmd_delete(services, args),
        "list": lambda: _cmd_list(services, args),
        "sync": lambda: _cmd_sync(services, args),
    }


def _command_name(args: argparse.Namespace) -> str:
    if args.delete:
        return "delete"
    if args.list:
        return "list"
    return "sync"


def _check_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if (args.delete or args.list) and args.extra_issues:
        parser.error(f"extraneous arguments: {' '.join(args.extra_issues)}")
    if args.list and args.issue:
        parser.error(f"extraneous arguments: {args.issue}")


def main(argv: Sequence[str] | None = None, *, services: Services | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _check_args(parser, args)
    command = _command_name(args)
    try:
        cfg: GrrConfig = services.config if services else prepare_config(args)
        services = services or build_services(cfg)
        handler = _build_handlers(services, args)[command]
        return execute_command(handler, args, command)
    except GrrError as exc:
        if args.verbose:
            get_logger().log_error(f"{command} failed", error=str(exc))
            print_error("".join(traceback.format_exception(exc)).rstrip())
        else:
            print_error(str(exc))
        return exc.exit_status


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
