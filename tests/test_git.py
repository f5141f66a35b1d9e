from __future__ import annotations

from pathlib import Path

import pytest

from grr.errors import DetachedHeadError
from grr.git import GitRepo, parse_log, repo_name_from_url
from grr.process import ProcessRunner


@pytest.mark.parametrize(
    "url, expected",
    [
        ("git@github.com:joyent/sdc-imgapi.git", "joyent/sdc-imgapi"),
        ("git@github.com:joyent/sdc-imgapi", "joyent/sdc-imgapi"),
        ("https://github.com/joyent/node-triton.git", "joyent/node-triton"),
        ("https://github.com/joyent/node-triton/", "joyent/node-triton"),
        ("ssh://jdoe@cr.joyent.us:29418/joyent/grr.git", "joyent/grr"),
        ("jdoe@cr.joyent.us:joyent/grr.git", "joyent/grr"),
    ],
)
def test_repo_name_from_url(url: str, expected: str) -> None:
    assert repo_name_from_url(url) == expected


def test_repo_name_from_unparseable_url() -> None:
    assert repo_name_from_url("not a url") is None


def test_parse_log_records() -> None:
    output = (
        "aaa\x00A <a@x>\x00first line\n\nbody\n\x1e\n"
        "bbb\x00B <b@x>\x00second\n\x1e\n"
    )
    commits = parse_log(output)
    assert [c.sha for c in commits] == ["aaa", "bbb"]
    assert commits[0].author == "A <a@x>"
    assert commits[0].message == "first line\n\nbody"
    assert commits[0].subject == "first line"
    assert parse_log("") == []


def test_git_repo_against_real_repository(git_repo: Path, git) -> None:  # type: ignore[no-untyped-def]
    repo = GitRepo(ProcessRunner(cwd=git_repo))
    assert repo.current_branch() == "master"
    assert repo.remotes() == ["origin"]
    assert repo.remote_url("origin") == "git@github.com:joyent/demo.git"
    assert repo.remote_url("cr") is None

    repo.create_branch("grr-FOO-1")
    assert repo.current_branch() == "grr-FOO-1"
    assert repo.branch_exists("grr-FOO-1")
    assert not repo.branch_exists("grr-FOO-2")
    assert repo.commits_since("master") == []

    for n in (1, 2):
        (git_repo / f"f{n}").write_text(str(n), encoding="utf-8")
        git(git_repo, "add", f"f{n}")
        git(git_repo, "commit", "-q", "-m", f"change {n}")
    commits = repo.commits_since("master")
    assert [c.subject for c in commits] == ["change 1", "change 2"]
    assert commits[-1].author == "Jane Doe <jane@example.com>"

    repo.checkout("master")
    repo.delete_branch("grr-FOO-1")
    assert repo.list_branches() == ["master"]


def test_detached_head_is_refused(git_repo: Path, git) -> None:  # type: ignore[no-untyped-def]
    git(git_repo, "checkout", "-q", "--detach")
    with pytest.raises(DetachedHeadError):
        GitRepo(ProcessRunner(cwd=git_repo)).current_branch()
