import sys

import pytest

from tunnel_router.execution.base import RunnerConfig
from tunnel_router.execution.subprocess_runner import SubprocessRunner


def test_runner_captures_combined_output_on_success():
    runner = SubprocessRunner()

    result = runner.run([sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr)"])

    assert result.ok
    assert result.returncode == 0
    assert "out" in result.output
    assert "err" in result.output


def test_runner_reports_nonzero_exit_as_failure():
    result = SubprocessRunner().run([sys.executable, "-c", "import sys; sys.exit(3)"])

    assert not result.ok
    assert result.returncode == 3


def test_runner_reports_timeout_as_failure():
    runner = SubprocessRunner(config=RunnerConfig(timeout_seconds=0.5))

    result = runner.run([sys.executable, "-c", "import time; time.sleep(10)"])

    assert not result.ok
    assert result.returncode is None
    assert "timed out" in result.output


def test_runner_reports_missing_program_as_failure():
    result = SubprocessRunner().run(["/nonexistent/tunnel-router-binary"])

    assert not result.ok
    assert result.returncode is None


def test_runner_rejects_empty_argv():
    with pytest.raises(ValueError):
        SubprocessRunner().run([])
