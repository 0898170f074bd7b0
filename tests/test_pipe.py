from __future__ import annotations

import asyncio
import io
import json
from typing import Any

import pytest
import structlog

from eval_pipe_runner import AdapterSettings, SandboxExecutor
from eval_pipe_runner.execution.types import RunOptions
from eval_pipe_runner.executor import EMPTY_CODE_MESSAGE
from eval_pipe_runner.log import configure_logging
from eval_pipe_runner.pipe import (
    CONFIG_ENV_VAR,
    PIPE_ERROR_PREFIX,
    _load_settings,
    decode_request,
    handle_pipe,
    read_request_bytes,
    run_pipe,
    write_pipe_error,
)
from eval_pipe_runner.errors import PipeCommunicationError


class _FakeSandbox:
    name = "fake"

    async def run(self, code: str, options: RunOptions) -> Any:
        return {"success": True, "result": {"score": 1.0, "reason": "ok"}, "stdout": ["hello"]}


class _ExplodingExecutor:
    async def execute(self, request: Any) -> Any:
        raise RuntimeError("executor blew up")


def _serve(data: bytes, executor: Any = None) -> tuple[dict, bytes]:
    reader = io.BytesIO(data)
    writer = io.BytesIO()
    asyncio.run(handle_pipe(reader, writer, executor or SandboxExecutor(_FakeSandbox()), chunk_size=4))
    raw = writer.getvalue()
    return json.loads(raw.decode("utf-8")), raw


def test_read_request_bytes_accumulates_chunks() -> None:
    payload = b'{"code": "x = 1"}' * 10
    assert read_request_bytes(io.BytesIO(payload), chunk_size=3) == payload


def test_decode_request_parses_object() -> None:
    request = decode_request(b'{"code": "x = 1", "params": {"a": null}, "config": {"timeout_seconds": 5}}')
    assert request.code == "x = 1"
    assert request.params == {"a": None}
    assert request.config.timeout_seconds == 5


def test_decode_request_non_object_is_empty_request() -> None:
    request = decode_request(b"[1, 2, 3]")
    assert request.code is None
    assert request.params is None


def test_decode_request_rejects_invalid_utf8() -> None:
    with pytest.raises(PipeCommunicationError, match="UTF-8"):
        decode_request(b"\xff\xfe\x00")


def test_valid_request_writes_one_compact_object() -> None:
    body, raw = _serve(json.dumps({"code": "def main(args):\n    return {}"}).encode("utf-8"))

    assert body["success"] is True
    assert body["status"] == "success"
    assert body["stdout"] == "hello"
    assert body["result"] == {"score": 1.0, "reason": "ok"}
    assert "sandbox_error" not in body
    assert not raw.endswith(b"\n")
    assert b": " not in raw


def test_non_json_input_is_pipe_level_failure() -> None:
    body, _ = _serve(b"this is not json")

    assert body["success"] is False
    assert body["status"] == "error"
    assert body["execution_time"] == 0
    assert body["sandbox_error"].startswith(PIPE_ERROR_PREFIX)


def test_empty_input_is_pipe_level_failure() -> None:
    body, _ = _serve(b"")
    assert body["sandbox_error"].startswith(PIPE_ERROR_PREFIX)
    assert body["execution_time"] == 0


def test_missing_code_is_execution_level_failure() -> None:
    body, _ = _serve(b'{"params": {"a": 1}}')

    assert body["success"] is False
    assert not body["sandbox_error"].startswith(PIPE_ERROR_PREFIX)
    assert body["execution_time"] >= 0


@pytest.mark.parametrize("payload", [b"[]", b"\"x\"", b"null", b"42"])
def test_non_object_json_is_validation_failure(payload: bytes) -> None:
    body, _ = _serve(payload)

    assert body["success"] is False
    assert body["status"] == "error"
    assert body["sandbox_error"] == EMPTY_CODE_MESSAGE
    assert body["stderr"] == EMPTY_CODE_MESSAGE
    assert body["execution_time"] >= 0


def test_executor_fault_is_caught_at_pipe_level() -> None:
    body, _ = _serve(b'{"code": "x = 1"}', executor=_ExplodingExecutor())

    assert body["sandbox_error"] == f"{PIPE_ERROR_PREFIX}executor blew up"
    assert body["stderr"] == "executor blew up"
    assert body["execution_time"] == 0


def test_load_settings_reads_config_env(tmp_path) -> None:
    config = tmp_path / "runner.toml"
    config.write_text("[runner]\ndefault_timeout_seconds = 12\n", encoding="utf-8")

    settings = _load_settings({CONFIG_ENV_VAR: str(config)})
    assert settings.default_timeout_seconds == 12
    assert _load_settings({}).default_timeout_seconds == 30


def test_write_pipe_error_writes_prefixed_object() -> None:
    writer = io.BytesIO()
    write_pipe_error(ValueError("Settings file not found: runner.toml"), writer)

    body = json.loads(writer.getvalue().decode("utf-8"))
    assert body["sandbox_error"] == f"{PIPE_ERROR_PREFIX}Settings file not found: runner.toml"
    assert body["execution_time"] == 0


@pytest.fixture
def unconfigured_logging():
    structlog.reset_defaults()
    yield
    configure_logging()


def test_run_pipe_keeps_logs_off_stdout(
    unconfigured_logging: None, capfd: pytest.CaptureFixture[str]
) -> None:
    run_pipe(AdapterSettings(log_level="INFO"), reader=io.BytesIO(b'{"params": {}}'))
    captured = capfd.readouterr()

    body = json.loads(captured.out)
    assert body["sandbox_error"] == EMPTY_CODE_MESSAGE
    assert "Request rejected" not in captured.out
    assert "Request rejected" in captured.err


def test_run_pipe_bad_log_level_still_answers_json() -> None:
    writer = io.BytesIO()
    result = run_pipe(AdapterSettings(log_level="LOUD"), reader=io.BytesIO(b"{}"), writer=writer)

    body = json.loads(writer.getvalue().decode("utf-8"))
    assert result.success is False
    assert body["sandbox_error"] == f"{PIPE_ERROR_PREFIX}Unknown log level: LOUD"
