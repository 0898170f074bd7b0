from __future__ import annotations

import asyncio
import json
import os
import sys
from typing import BinaryIO, Mapping

from .errors import PipeCommunicationError
from .execution.registry import load_sandbox
from .executor import SandboxExecutor
from .log import configure_logging, get_logger
from .models import ExecutionRequest, ExecutionResult
from .settings import AdapterSettings

logger = get_logger(__name__)

PIPE_ERROR_PREFIX = "pipe communication error: "
CONFIG_ENV_VAR = "EVAL_PIPE_RUNNER_CONFIG"


def read_request_bytes(stream: BinaryIO, chunk_size: int = 65536) -> bytes:
    """Read a binary stream until end-of-stream and return all bytes.

    Example:
        ```python
        raw = read_request_bytes(sys.stdin.buffer)
        ```
    """
    chunks: list[bytes] = []
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        chunks.append(chunk)
    return b"".join(chunks)


def decode_request(raw: bytes) -> ExecutionRequest:
    """Decode UTF-8 JSON bytes into a request.

    Example:
        ```python
        request = decode_request(b'{"code": "x = 1"}')
        ```
    """
    try:
        payload = json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as exc:
        raise PipeCommunicationError(f"request is not valid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise PipeCommunicationError(f"request is not valid JSON: {exc}") from exc
    return ExecutionRequest.from_payload(payload)


def encode_result(result: ExecutionResult) -> bytes:
    """Serialize a result as one compact UTF-8 JSON object.

    Example:
        ```python
        data = encode_result(ExecutionResult(success=True, status="success", execution_time=0.1))
        ```
    """
    text = json.dumps(result.to_dict(), ensure_ascii=False, separators=(",", ":"), default=str)
    return text.encode("utf-8", errors="replace")


def pipe_error_result(exc: BaseException) -> ExecutionResult:
    """Build the top-level result for a failure surrounding the whole request.

    Example:
        ```python
        result = pipe_error_result(ValueError("bad input"))
        ```
    """
    message = str(exc) or type(exc).__name__
    return ExecutionResult(
        success=False,
        status="error",
        stderr=message,
        execution_time=0.0,
        sandbox_error=f"{PIPE_ERROR_PREFIX}{message}",
    )


def write_pipe_error(exc: BaseException, writer: BinaryIO | None = None) -> ExecutionResult:
    """Write the pipe-level error result for `exc` as the single response.

    Example:
        ```python
        write_pipe_error(ValueError("Settings file not found: runner.toml"))
        ```
    """
    out = writer or sys.stdout.buffer
    result = pipe_error_result(exc)
    out.write(encode_result(result))
    out.flush()
    return result


async def handle_pipe(
    reader: BinaryIO,
    writer: BinaryIO,
    executor: SandboxExecutor,
    *,
    chunk_size: int = 65536,
) -> ExecutionResult:
    """Read one request, execute it, and write exactly one JSON result.

    Example:
        ```python
        result = asyncio.run(handle_pipe(sys.stdin.buffer, sys.stdout.buffer, executor))
        ```
    """
    try:
        raw = await asyncio.to_thread(read_request_bytes, reader, chunk_size)
        request = decode_request(raw)
        result = await executor.execute(request)
    except Exception as exc:
        logger.warning("Pipe communication failed", error_type=type(exc).__name__, error=str(exc))
        result = pipe_error_result(exc)

    writer.write(encode_result(result))
    writer.flush()
    return result


def _load_settings(environ: Mapping[str, str] | None = None) -> AdapterSettings:
    """Load settings from the file named by the config env var, if any.

    Example:
        ```python
        settings = _load_settings({"EVAL_PIPE_RUNNER_CONFIG": "/etc/epr.toml"})
        ```
    """
    env = os.environ if environ is None else environ
    config_path = env.get(CONFIG_ENV_VAR)
    if config_path:
        return AdapterSettings.from_file(config_path)
    return AdapterSettings()


def run_pipe(
    settings: AdapterSettings,
    reader: BinaryIO | None = None,
    writer: BinaryIO | None = None,
) -> ExecutionResult:
    """Resolve the sandbox once, then serve a single request over the pipe.

    Logging is routed to stderr before anything else runs.

    Example:
        ```python
        result = run_pipe(AdapterSettings(backend="local"))
        ```
    """
    out = writer or sys.stdout.buffer
    try:
        configure_logging(settings.log_level, settings.log_format)
    except ValueError as exc:
        return write_pipe_error(exc, out)
    sandbox = load_sandbox(settings.backend, settings)
    executor = SandboxExecutor(sandbox, settings)
    return asyncio.run(
        handle_pipe(
            reader or sys.stdin.buffer,
            out,
            executor,
            chunk_size=settings.read_chunk_size,
        )
    )


def main() -> int:
    """Console entry point for the single-shot pipe adapter.

    Example:
        ```python
        # echo '{"code": "x = 1"}' | eval-pipe-runner
        ```
    """
    try:
        settings = _load_settings()
    except Exception as exc:
        write_pipe_error(exc)
        return 0
    run_pipe(settings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
