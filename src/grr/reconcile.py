"""Create-or-update reconciliation of a Gerrit CR with the local branch.

``CrSync.sync`` runs one ordered pipeline. Each stage reads and writes a
small set of :class:`SyncState` fields; a failing stage aborts the rest.
The only unconditional step is the integration branch cleanup once the
squash/push sub-pipeline has started.

Decisions are made by plain functions (``reconcile_primary_issue``,
``reconcile_extra_issues``, ``build_commit_message``, ``commits_to_push``,
``decide_action``) so they can be tested without git or a network.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import TextIO

from .branch_config import BranchMetadataStore, serialize_extra_issues
from .concurrency import fetch_all
from .errors import (
    CannotAddMainIssueAsExtra,
    CannotRemoveMainIssue,
    CleanupError,
    ConfigurationError,
    DuplicateExtraIssue,
    GrrError,
    IntegrationBranchActive,
    IssueConflictError,
    MissingIssueError,
    ReviewNumberNotFound,
)
from .gerrit import GerritClient, parse_created_review_number
from .git import GitRepo, repo_name_from_url
from .issues import IssueResolver
from .lifecycle import INTEGRATION_PREFIX, BranchLifecycle, integration_branch_name
from .logging import get_logger
from .models import (
    INTEGRATION_APPROVAL,
    REVIEW_APPROVAL,
    Commit,
    CrAction,
    ExtraIssue,
    IssueRef,
    Review,
)
from .process import indent
from .ux import (
    print_extra_issues,
    print_issue,
    print_new_commits,
    print_parenthetical,
    print_warning,
)

ORIGIN = "origin"


@dataclass
class SyncRequest:
    issue_arg: str | None = None
    # Positional extras: added when absent, skipped when already present.
    extra_issue_args: list[str] = field(default_factory=list)
    add_extra_issue_args: list[str] = field(default_factory=list)
    remove_extra_issue_args: list[str] = field(default_factory=list)
    parenthetical: str | None = None
    update: bool = False


@dataclass
class CachedMetadata:
    """Branch metadata as read at the start of a run."""

    issue: str = ""
    extra_issues: list[ExtraIssue] = field(default_factory=list)
    title: str = ""
    parenthetical: str = ""
    last_pushed_sha: str = ""
    cr: str = ""


@dataclass
class SyncState:
    """Built once the primary issue is known; later stages fill in the rest."""

    repo_name: str
    resolver: IssueResolver
    start_branch: str
    cached: CachedMetadata
    issue: IssueRef
    issue_branch: str = ""
    title: str = ""
    parenthetical: str = ""
    extra_issues: list[ExtraIssue] = field(default_factory=list)
    username: str = ""
    commits: list[Commit] = field(default_factory=list)
    review: Review | None = None
    commit_message: str = ""
    to_push: list[Commit] = field(default_factory=list)
    action: CrAction = CrAction.NONE
    cr: str = ""
    pushed: bool = False


@dataclass
class SyncResult:
    action: CrAction
    issue: IssueRef
    branch: str
    cr: str = ""
    patch_set: str = ""
    url: str = ""
    pushed_commits: list[Commit] = field(default_factory=list)


# ---- pure decision helpers ----------------------------------------------


def resolve_repo_name(git: GitRepo) -> str:
    url = git.remote_url(ORIGIN)
    if not url:
        raise ConfigurationError(f'no "{ORIGIN}" git remote: cannot determine the repo name')
    name = repo_name_from_url(url)
    if not name:
        raise ConfigurationError(f"could not determine repo name from origin URL: {url}")
    return name


def reconcile_primary_issue(
    resolved: IssueRef | None,
    cached_issue: str,
    *,
    branch: str,
    on_main_line: bool,
    adopt: Callable[[str], IssueRef],
) -> IssueRef:
    if resolved is not None and cached_issue and resolved.id != cached_issue:
        raise IssueConflictError(
            f'issue conflict: "{resolved.id}" does not match the stored issue '
            f"({cached_issue}) for the current branch ({branch})"
        )
    if resolved is None and not cached_issue:
        if on_main_line:
            raise MissingIssueError("missing <issue> argument")
        raise MissingIssueError(
            "grr was not setup with an <issue> for this branch, use `grr <issue>`"
        )
    if resolved is None:
        return adopt(cached_issue)
    return resolved


def reconcile_extra_issues(
    cached: Sequence[ExtraIssue],
    primary: IssueRef,
    *,
    declare: Sequence[IssueRef] = (),
    add: Sequence[IssueRef] = (),
    remove: Sequence[IssueRef] = (),
) -> list[ExtraIssue]:
    """Apply removals, then declared extras, then additions.

    Declared extras (positional ``<extra-issue>`` arguments) already in the
    set are skipped, so repeating a command is harmless. Explicit additions
    of an issue already in the set raise :class:`DuplicateExtraIssue`. The
    primary issue never becomes an extra.
    """
    extras = [replace(e) for e in cached]
    for issue in remove:
        if issue == primary:
            raise CannotRemoveMainIssue(f"cannot remove main issue {primary.id}")
        extras = [e for e in extras if e.issue != issue]
    for issue, strict in [*((i, False) for i in declare), *((i, True) for i in add)]:
        if issue == primary:
            raise CannotAddMainIssueAsExtra(
                f"cannot add main issue {primary.id} as an extra issue"
            )
        if any(e.issue == issue for e in extras):
            if strict:
                raise DuplicateExtraIssue(f"duplicate extra issue {issue.id}")
            continue
        extras.append(ExtraIssue(issue=issue))
    return extras


def approval_trailers(review: Review | None) -> list[str]:
    if review is None:
        return []
    reviewed = [
        f"Reviewed by: {a.reviewer_name} <{a.reviewer_email}>"
        for a in review.approvals
        if a.type == REVIEW_APPROVAL and a.value > 0
    ]
    approved = [
        f"Approved by: {a.reviewer_name} <{a.reviewer_email}>"
        for a in review.approvals
        if a.type == INTEGRATION_APPROVAL and a.value > 0
    ]
    return reviewed + approved


def build_commit_message(
    issue: IssueRef,
    title: str,
    parenthetical: str,
    extras: Sequence[ExtraIssue],
    review: Review | None,
) -> str:
    first = f"{issue.name} {title}"
    if parenthetical:
        first += f" ({parenthetical})"
    lines = [first]
    lines.extend(f"{e.issue.name} {e.title}" for e in extras)
    lines.extend(approval_trailers(review))
    return "\n".join(lines)


def commits_to_push(commits: Sequence[Commit], last_pushed_sha: str) -> list[Commit]:
    """New commits, newest first. ``commits`` is oldest first."""
    if not commits or commits[-1].sha == last_pushed_sha:
        return []
    new: list[Commit] = []
    for commit in reversed(commits):
        if commit.sha == last_pushed_sha:
            break
        new.append(commit)
    return new


def decide_action(
    to_push: Sequence[Commit],
    review: Review | None,
    commit_message: str,
    *,
    have_commits: bool = True,
) -> CrAction:
    if to_push:
        return CrAction.UPDATE if review is not None else CrAction.CREATE
    if (
        review is not None
        and have_commits
        and review.commit_message.strip() != commit_message.strip()
    ):
        return CrAction.UPDATE_COMMIT_MESSAGE
    return CrAction.NONE


def new_commits_comment(commits: Sequence[Commit]) -> str:
    # One leading space is enough for Gerrit to render a code block.
    lines = ["New commits:"]
    for c in commits:
        lines.extend(["    ", f"    commit {c.sha}", "    ", indent(c.message, "    ")])
    return "\n".join(lines)


# ---- the pipeline -------------------------------------------------------


class CrSync:
    def __init__(
        self,
        git: GitRepo,
        store: BranchMetadataStore,
        gerrit: GerritClient,
        lifecycle: BranchLifecycle,
        resolver_factory: Callable[[str], IssueResolver],
        *,
        main_line: str,
    ) -> None:
        self.git = git
        self.store = store
        self.gerrit = gerrit
        self.lifecycle = lifecycle
        self.resolver_factory = resolver_factory
        self.main_line = main_line
        self.logger = get_logger()

    def sync(self, request: SyncRequest) -> SyncResult:
        with self.logger.timed_operation("sync"):
            repo_name, resolver, resolved = self._resolve_identity(request)
            state = self._reconcile_primary(repo_name, resolver, resolved)
            self._reconcile_extras(state, request)
            self._ensure_remote(state)
            self._resolve_title(state, request)
            self._enter_issue_branch(state)
            self._persist_metadata(state, request)
            self._read_commits(state)
            self._fetch_review(state)
            self._compute_commit_message(state)
            self._compute_commits_to_push(state)
            self._decide(state)
            self._apply(state)
            self._persist_last_pushed_sha(state)
            self._refresh_and_comment(state)
        return self._result(state)

    # 1. repo name + issue argument; reads: request
    def _resolve_identity(
        self, request: SyncRequest
    ) -> tuple[str, IssueResolver, IssueRef | None]:
        repo_name = resolve_repo_name(self.git)
        resolver = self.resolver_factory(repo_name)
        if not request.issue_arg:
            return repo_name, resolver, None
        resolved = resolver.resolve(request.issue_arg)
        self.logger.debug("issue arg", issue_type=resolved.type, issue_id=resolved.id)
        return repo_name, resolver, resolved

    # 2. creates the state: start_branch, cached, issue
    def _reconcile_primary(
        self, repo_name: str, resolver: IssueResolver, resolved: IssueRef | None
    ) -> SyncState:
        branch = self.git.current_branch()
        if branch.startswith(INTEGRATION_PREFIX):
            raise IntegrationBranchActive(
                f'currently on integration branch "{branch}", left over from an earlier '
                "failed run: check out your issue branch and delete it"
            )
        cached = CachedMetadata(
            issue=self.store.get_issue(branch),
            extra_issues=self.store.get_extra_issues(branch),
            title=self.store.get_title(branch),
            parenthetical=self.store.get_parenthetical(branch),
            last_pushed_sha=self.store.get_last_pushed_sha(branch),
            cr=self.store.get_cr(branch),
        )
        issue = reconcile_primary_issue(
            resolved,
            cached.issue,
            branch=branch,
            on_main_line=branch == self.main_line,
            adopt=resolver.adopt,
        )
        return SyncState(
            repo_name=repo_name,
            resolver=resolver,
            start_branch=branch,
            cached=cached,
            issue=issue,
        )

    # 3. reads: cached.extra_issues, issue / writes: extra_issues
    def _reconcile_extras(self, state: SyncState, request: SyncRequest) -> None:
        resolve = state.resolver.resolve
        state.extra_issues = reconcile_extra_issues(
            state.cached.extra_issues,
            state.issue,
            declare=[resolve(a) for a in request.extra_issue_args],
            add=[resolve(a) for a in request.add_extra_issue_args],
            remove=[resolve(r) for r in request.remove_extra_issue_args],
        )
        if request.update:
            stale = list(state.extra_issues)
        else:
            stale = [e for e in state.extra_issues if not e.title]
        titles = fetch_all([e.issue for e in stale], state.resolver.fetch_title)
        for extra, title in zip(stale, titles):
            extra.title = title

    # 4. writes: username
    def _ensure_remote(self, state: SyncState) -> None:
        state.username = self.gerrit.find_username()
        self.gerrit.ensure_remote(state.repo_name, state.username)

    # 5. reads: cached.title / writes: title, parenthetical
    def _resolve_title(self, state: SyncState, request: SyncRequest) -> None:
        if state.cached.title and not request.update:
            state.title = state.cached.title
        else:
            state.title = state.resolver.fetch_title(state.issue)
        state.parenthetical = request.parenthetical or state.cached.parenthetical
        print_issue(state.issue, state.title)
        if request.parenthetical:
            print_parenthetical(request.parenthetical)
        print_extra_issues(state.extra_issues)

    # 6. writes: issue_branch
    def _enter_issue_branch(self, state: SyncState) -> None:
        state.issue_branch = self.lifecycle.ensure_on_issue_branch(
            state.start_branch, state.issue.id
        )

    # 7. only fields whose value changed are written
    def _persist_metadata(self, state: SyncState, request: SyncRequest) -> None:
        branch, cached = state.issue_branch, state.cached
        if cached.issue != state.issue.id:
            self.store.set_issue(branch, state.issue.id)
        if serialize_extra_issues(cached.extra_issues) != serialize_extra_issues(
            state.extra_issues
        ):
            self.store.set_extra_issues(branch, state.extra_issues)
        if cached.title != state.title:
            self.store.set_title(branch, state.title)
        if request.parenthetical and cached.parenthetical != request.parenthetical:
            self.store.set_parenthetical(branch, request.parenthetical)

    # 8. writes: commits
    def _read_commits(self, state: SyncState) -> None:
        state.commits = self.git.commits_since(self.main_line)
        self.logger.debug("local commits", count=len(state.commits))

    # 9. writes: review, cr
    def _fetch_review(self, state: SyncState) -> None:
        state.cr = state.cached.cr
        if state.cr:
            state.review = self.gerrit.query_current_review(state.cr, state.repo_name)

    # 10. writes: commit_message
    def _compute_commit_message(self, state: SyncState) -> None:
        state.commit_message = build_commit_message(
            state.issue, state.title, state.parenthetical, state.extra_issues, state.review
        )

    # 11. writes: to_push
    def _compute_commits_to_push(self, state: SyncState) -> None:
        state.to_push = commits_to_push(state.commits, state.cached.last_pushed_sha)
        if state.to_push:
            print_new_commits(state.to_push)
        elif state.cr and state.cached.last_pushed_sha:
            print(f"No new commits after {state.cached.last_pushed_sha[:12]}")

    # 12. writes: action
    def _decide(self, state: SyncState) -> None:
        state.action = decide_action(
            state.to_push, state.review, state.commit_message, have_commits=bool(state.commits)
        )
        if (
            state.action is CrAction.NONE
            and state.review is not None
            and not state.commits
            and state.review.commit_message.strip() != state.commit_message.strip()
        ):
            print_warning("CR commit message is out of date, but there are no local commits to amend")
        self.logger.log_operation("cr_action", action=state.action.value, cr=state.cr)

    # 13. squash onto a disposable integration branch and push
    def _apply(self, state: SyncState) -> None:
        if state.action is CrAction.NONE:
            return
        integration = integration_branch_name(state.issue.id)
        author = state.commits[-1].author
        if state.action is CrAction.CREATE:
            print("Creating CR:")
        elif state.action is CrAction.UPDATE:
            print(f"Updating CR {state.cr}:")
        else:
            print(f"Updating CR {state.cr} commit message:")

        started = False
        try:
            if self.git.branch_exists(integration):
                self.git.delete_branch(integration, echo=True)
            started = True
            self.git.git("checkout", "--track", "-b", integration, self.main_line, echo=True)
            self.git.git("merge", "--squash", state.issue_branch, echo=True)
            self.git.git("commit", "--author", author, "-m", state.commit_message, echo=True)
            self._push(state)
        except BaseException as exc:
            if started:
                self._cleanup(state, integration, primary=exc)
            raise
        self._cleanup(state, integration, primary=None)

    def _push(self, state: SyncState) -> None:
        if state.cr:
            self.gerrit.push("HEAD", f"refs/changes/{state.cr}")
            state.pushed = True
            return
        result = self.gerrit.push("HEAD", f"refs/for/{self.main_line}")
        state.pushed = True
        number = parse_created_review_number(result.stderr)
        if number is None:
            raise ReviewNumberNotFound(
                f'could not determine created CR num from "git push" output: {result.stderr!r}'
            )
        state.cr = str(number)
        self.logger.debug("created CR", cr=state.cr)
        self.store.set_cr(state.issue_branch, state.cr)

    def _cleanup(self, state: SyncState, integration: str, *, primary: BaseException | None) -> None:
        errors: list[GrrError] = []
        for step in (
            lambda: self._discard_integration_worktree(integration),
            lambda: self.git.checkout(state.issue_branch),
            lambda: self.git.delete_branch(integration),
        ):
            try:
                step()
            except GrrError as exc:
                errors.append(exc)
        if not errors:
            return
        if primary is not None:
            for err in errors:
                self.logger.debug("cleanup failed", error=str(err))
                print_warning(f"cleanup failed: {err}")
            return
        raise CleanupError(
            f'cleanup of integration branch "{integration}" failed: '
            + "; ".join(str(e) for e in errors)
        ) from errors[0]

    def _discard_integration_worktree(self, integration: str) -> None:
        # A conflicted `merge --squash` leaves an unmerged index that blocks checkout.
        if self.git.current_branch() == integration:
            self.git.git("reset", "-q", "--hard", echo=True)

    # 14.
    def _persist_last_pushed_sha(self, state: SyncState) -> None:
        if not state.pushed:
            return
        newest = state.commits[-1].sha
        if newest != state.cached.last_pushed_sha:
            self.store.set_last_pushed_sha(state.issue_branch, newest)

    # 15.
    def _refresh_and_comment(self, state: SyncState) -> None:
        if not state.pushed:
            return
        state.review = self.gerrit.query_current_review(state.cr, state.repo_name)
        if state.to_push:
            self.gerrit.post_comment(
                state.cr, state.review.current_patch_set, new_commits_comment(state.to_push)
            )

    # 16.
    def _result(self, state: SyncState) -> SyncResult:
        return SyncResult(
            action=state.action,
            issue=state.issue,
            branch=state.issue_branch,
            cr=state.cr,
            patch_set=state.review.current_patch_set if state.review else "",
            url=self.gerrit.review_url(state.cr) if state.cr else "",
            pushed_commits=list(state.to_push) if state.pushed else [],
        )


def report(result: SyncResult, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    if result.action is CrAction.NONE:
        if result.cr:
            print(f"CR unchanged: {result.cr} <{result.url}>", file=stream)
        else:
            print("\nMake commits and run `grr` in this branch to create a CR.", file=stream)
        return
    verb = {
        CrAction.CREATE: "CR created",
        CrAction.UPDATE: "CR updated",
        CrAction.UPDATE_COMMIT_MESSAGE: "CR commit message updated",
    }[result.action]
    print(f"{verb}: {result.cr} patchset {result.patch_set} <{result.url}>", file=stream)


__all__ = [
    "CachedMetadata",
    "CrSync",
    "SyncRequest",
    "SyncResult",
    "SyncState",
    "approval_trailers",
    "build_commit_message",
    "commits_to_push",
    "decide_action",
    "new_commits_comment",
    "reconcile_extra_issues",
    "reconcile_primary_issue",
    "report",
    "resolve_repo_name",
]
