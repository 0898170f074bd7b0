from __future__ import annotations

import inspect
import json
import time
from typing import Any, Mapping, Sequence

from .errors import SandboxUnavailableError
from .execution.capabilities import unenforced_config_fields
from .execution.engine import SandboxPrimitive
from .execution.types import RunOptions, SandboxResponse
from .log import get_logger
from .models import ExecutionRequest, ExecutionResult
from .settings import AdapterSettings
from .wrapper import wrap_code

logger = get_logger(__name__)

EMPTY_CODE_MESSAGE = "code must be a non-empty string"
FALLBACK_ERROR = "execution failed"
MISSING_RUN_MESSAGE = "cannot find a callable sandbox run function"


def _elapsed(started: float) -> float:
    """Return non-negative wall-clock seconds since `started`.

    Example:
        ```python
        seconds = _elapsed(time.perf_counter())
        ```
    """
    return max(0.0, time.perf_counter() - started)


def _join_stream(value: Any) -> str | None:
    """Collapse a stream field that may be a chunk sequence into one string.

    Example:
        ```python
        _join_stream(["a", "b"])  # "a\\nb"
        ```
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Sequence):
        return "\n".join(str(chunk) for chunk in value)
    return str(value)


def _extract_value(response: SandboxResponse) -> Any:
    """Pick the returned value, preferring the JSON-encoded field.

    A JSON field that fails to parse falls back to the raw structured field.

    Example:
        ```python
        _extract_value(SandboxResponse(success=True, json_result='{"score": 1}'))
        ```
    """
    if response.json_result is None:
        return response.result
    try:
        return json.loads(response.json_result)
    except ValueError:
        return response.result


def _is_zero_score(value: Any) -> bool:
    """Report whether a structured value carries a numeric score of exactly 0.

    Example:
        ```python
        _is_zero_score({"score": 0})  # True
        ```
    """
    if not isinstance(value, Mapping) or "score" not in value:
        return False
    score = value["score"]
    return isinstance(score, (int, float)) and not isinstance(score, bool) and score == 0


def error_result(message: str, started: float) -> ExecutionResult:
    """Build an error result carrying `message` as both stderr and sandbox error.

    Example:
        ```python
        result = error_result("code must be a non-empty string", time.perf_counter())
        ```
    """
    return ExecutionResult(
        success=False,
        status="error",
        stderr=message,
        execution_time=_elapsed(started),
        sandbox_error=message,
    )


def interpret_response(raw: Any, started: float) -> ExecutionResult:
    """Turn a sandbox primitive's raw answer into one normalized result.

    Example:
        ```python
        result = interpret_response({"success": True, "result": {"score": 1.0}}, started)
        ```
    """
    response = SandboxResponse.coerce(raw)
    if response is not None and response.success:
        value = _extract_value(response)
        stdout = _join_stream(response.stdout)
        stderr = _join_stream(response.stderr)
        if _is_zero_score(value):
            reason = value.get("reason")
            return ExecutionResult(
                success=False,
                status="error",
                result=value,
                stdout=stdout,
                stderr=stderr,
                execution_time=_elapsed(started),
                sandbox_error=str(reason) if reason else FALLBACK_ERROR,
            )
        return ExecutionResult(
            success=True,
            status="success",
            result=value,
            stdout=stdout,
            stderr=stderr,
            execution_time=_elapsed(started),
        )

    error_message = response.error if response is not None and response.error else FALLBACK_ERROR
    stdout = _join_stream(response.stdout) if response is not None else None
    stderr = _join_stream(response.stderr) if response is not None else None
    return ExecutionResult(
        success=False,
        status="error",
        stdout=stdout,
        stderr=stderr or error_message,
        execution_time=_elapsed(started),
        sandbox_error=error_message,
    )


class SandboxExecutor:
    """Execute one request through an injected sandbox run primitive.

    Example:
        ```python
        executor = SandboxExecutor(LocalSandbox())
        result = await executor.execute(ExecutionRequest(code="x = 1"))
        ```
    """

    def __init__(self, sandbox: SandboxPrimitive | None, settings: AdapterSettings | None = None) -> None:
        """Bind the executor to a resolved sandbox and settings.

        Example:
            ```python
            executor = SandboxExecutor(sandbox, AdapterSettings(default_timeout_seconds=10))
            ```
        """
        self._sandbox = sandbox
        self._settings = settings or AdapterSettings()

    @property
    def backend_name(self) -> str:
        """Return the sandbox backend name used for capability lookups.

        Example:
            ```python
            executor.backend_name  # "local"
            ```
        """
        name = getattr(self._sandbox, "name", None)
        if isinstance(name, str) and name:
            return name
        return type(self._sandbox).__name__.lower()

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run one request; every failure becomes an error result.

        Example:
            ```python
            result = await executor.execute(ExecutionRequest(code="def main(args):\\n    return 1"))
            ```
        """
        started = time.perf_counter()
        try:
            if not isinstance(request.code, str) or not request.code:
                logger.info("Request rejected", reason=EMPTY_CODE_MESSAGE)
                return error_result(EMPTY_CODE_MESSAGE, started)

            run = getattr(self._sandbox, "run", None)
            if run is None or not callable(run):
                raise SandboxUnavailableError(MISSING_RUN_MESSAGE, backend=self.backend_name)

            ignored = unenforced_config_fields(self.backend_name, request.config)
            if ignored:
                logger.info(
                    "Sandbox config fields not enforced by backend",
                    backend=self.backend_name,
                    fields=ignored,
                )

            timeout_seconds = self._settings.resolve_timeout_seconds(request.config.timeout_seconds)
            options = RunOptions(timeout_ms=int(timeout_seconds * 1000), config=request.config)
            wrapped = wrap_code(request.code, request.params)

            raw = run(wrapped, options)
            if inspect.isawaitable(raw):
                raw = await raw

            result = interpret_response(raw, started)
            logger.debug(
                "Sandbox run finished",
                backend=self.backend_name,
                status=result.status,
                execution_time=round(result.execution_time, 4),
            )
            return result
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning(
                "Sandbox execution error",
                backend=self.backend_name,
                error_type=type(exc).__name__,
                error=message,
            )
            return error_result(message, started)
