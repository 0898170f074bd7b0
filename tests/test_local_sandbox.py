"""End-to-end checks through a real worker subprocess."""

from __future__ import annotations

import asyncio

import pytest

from eval_pipe_runner import ExecutionRequest, LocalSandbox, SandboxExecutor
from eval_pipe_runner.execution.types import RunOptions
from eval_pipe_runner.models import SandboxConfig
from eval_pipe_runner.wrapper import COMPLETION_REASON

SANDBOX = LocalSandbox()


def run_request(code, params=None, timeout_seconds=None):
    request = ExecutionRequest(
        code=code,
        params=params,
        config=SandboxConfig(timeout_seconds=timeout_seconds),
    )
    return asyncio.run(SandboxExecutor(SANDBOX).execute(request))


def test_final_expression_is_returned() -> None:
    response = asyncio.run(SANDBOX.run("x = 20\nx + 1", RunOptions(timeout_ms=5000)))
    assert response.success is True
    assert response.result == 21
    assert response.json_result == "21"


def test_no_main_reports_default_envelope() -> None:
    result = run_request("x = 1")

    assert result.success is True
    assert result.result == {"score": 1.0, "reason": COMPLETION_REASON}


def test_main_with_params_and_stdout() -> None:
    code = """
def main(args):
    print("checking", args.answer)
    print("done")
    return {"score": 0.5 if args.answer == 42 else 0.1, "reason": "partial"}
"""
    result = run_request(code, params={"answer": 42, "missing": None})

    assert result.success is True
    assert result.result == {"score": 0.5, "reason": "partial"}
    assert result.stdout == "checking 42\ndone"


def test_zero_score_from_main_is_error() -> None:
    code = "def main(args):\n    return {'score': 0, 'reason': 'mismatch'}"
    result = run_request(code)

    assert result.success is False
    assert result.status == "error"
    assert result.sandbox_error == "mismatch"


def test_main_exception_is_semantic_failure_with_traceback() -> None:
    code = "def main(args):\n    return 1 / 0"
    result = run_request(code)

    assert result.success is False
    assert "ZeroDivisionError" in (result.sandbox_error or "")
    assert "Traceback" in (result.stderr or "")


def test_async_main_runs_in_worker() -> None:
    code = """
import asyncio

async def main(args):
    await asyncio.sleep(0)
    return {"score": 1.0, "reason": "async ok"}
"""
    result = run_request(code)
    assert result.success is True
    assert result.result["reason"] == "async ok"


def test_syntax_error_is_sandbox_failure() -> None:
    result = run_request("def broken(:\n    pass")

    assert result.success is False
    assert "SyntaxError" in (result.sandbox_error or "")


def test_top_level_error_is_sandbox_failure() -> None:
    result = run_request("raise KeyError('top')")

    assert result.success is False
    assert "KeyError" in (result.sandbox_error or "")


def test_timeout_reports_failure() -> None:
    code = "import time\ntime.sleep(10)"
    result = run_request(code, timeout_seconds=1)

    assert result.success is False
    assert "timed out" in (result.sandbox_error or "")


def test_output_is_truncated() -> None:
    sandbox = LocalSandbox(max_output_kb=1)
    response = asyncio.run(sandbox.run("print('x' * 5000)", RunOptions(timeout_ms=5000)))

    assert response.success is True
    assert sum(len(line) for line in response.stdout) == 1024


def test_local_sandbox_rejects_non_positive_output_limit() -> None:
    with pytest.raises(ValueError, match="max_output_kb"):
        LocalSandbox(max_output_kb=0)
