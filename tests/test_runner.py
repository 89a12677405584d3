"""Process runner: success, non-zero exit, timeout, missing executable."""
import sys

import pytest

from slides_backend.errors import ConversionError, ConversionStepError
from slides_backend.runner import run_tool


def test_success_captures_output():
    result = run_tool(sys.executable, ["-c", "print('ok')"], timeout=30)
    assert result.returncode == 0
    assert result.stdout.strip() == "ok"


def test_non_zero_exit_raises_with_stderr():
    with pytest.raises(ConversionStepError) as exc_info:
        run_tool(sys.executable, ["-c", "import sys; sys.stderr.write('bad deck'); sys.exit(3)"], timeout=30)
    err = exc_info.value
    assert "exit status 3" in err.reason
    assert "bad deck" in err.stderr
    # Client-facing message stays generic.
    assert "bad deck" not in err.message


def test_timeout_raises():
    with pytest.raises(ConversionStepError) as exc_info:
        run_tool(sys.executable, ["-c", "import time; time.sleep(10)"], timeout=0.5)
    assert "timed out" in exc_info.value.reason


def test_missing_executable_raises():
    with pytest.raises(ConversionStepError) as exc_info:
        run_tool("/nonexistent/soffice-does-not-exist", ["--version"], timeout=5)
    assert exc_info.value.tool == "soffice-does-not-exist"


def test_step_error_is_conversion_error():
    assert issubclass(ConversionStepError, ConversionError)
    assert ConversionStepError("pdftoppm", "x").status_code == 500
