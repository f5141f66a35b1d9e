from __future__ import annotations

import sys
from pathlib import Path

import pytest

from grr.errors import ExternalToolError
from grr.process import ProcessResult, ProcessRunner, failure_message, format_argv, indent


def test_run_captures_output_and_exit_code(tmp_path: Path) -> None:
    runner = ProcessRunner(cwd=tmp_path)
    result = runner.run([sys.executable, "-c", "import sys; print('out'); sys.exit(3)"])
    assert result.stdout == "out\n"
    assert result.exit_code == 3
    assert not result.ok


def test_check_raises_with_context() -> None:
    runner = ProcessRunner()
    with pytest.raises(ExternalToolError) as excinfo:
        runner.check(
            [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(2)"]
        )
    assert excinfo.value.exit_code == 2
    assert excinfo.value.stderr == "bad"
    assert "exit status 2: bad" in str(excinfo.value)


def test_missing_executable() -> None:
    with pytest.raises(ExternalToolError, match="cannot run"):
        ProcessRunner().run(["grr-no-such-binary-xyz"])


def test_echo_prints_indented_command(capsys: pytest.CaptureFixture[str]) -> None:
    ProcessRunner().run([sys.executable, "-c", "print('hi there')"], echo=True)
    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("    $ ")
    assert out[1] == "    hi there"


def test_helpers() -> None:
    assert indent("a\nb") == "    a\n    b"
    assert format_argv(["git", "commit", "-m", "two words"]) == "git commit -m 'two words'"
    result = ProcessResult(("git", "push"), "", "rejected\n", 1)
    assert failure_message(result) == '"git push" failed with exit status 1: rejected'
