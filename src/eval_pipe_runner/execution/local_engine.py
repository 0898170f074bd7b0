from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

from ..log import get_logger
from .types import RunOptions, SandboxResponse

logger = get_logger(__name__)


def _worker_path() -> Path:
    """Return the absolute path to the worker module file.

    Example:
        ```python
        path = _worker_path()
        ```
    """
    return Path(__file__).resolve().parents[1] / "worker.py"


class LocalSandbox:
    """Run wrapped programs in a fresh local Python interpreter.

    Example:
        ```python
        sandbox = LocalSandbox(max_output_kb=256)
        ```
    """

    name = "local"

    def __init__(
        self,
        *,
        python_executable: str | None = None,
        max_output_kb: int = 1024,
    ) -> None:
        """Initialize a local sandbox bound to an interpreter.

        Example:
            ```python
            sandbox = LocalSandbox(python_executable="/usr/bin/python3")
            ```
        """
        cleaned = (python_executable or "").strip()
        self._python = cleaned or sys.executable
        if max_output_kb <= 0:
            raise ValueError("LocalSandbox requires a positive 'max_output_kb'")
        self._max_output_kb = max_output_kb

    async def run(self, code: str, options: RunOptions) -> SandboxResponse:
        """Execute one wrapped program in the worker subprocess.

        Example:
            ```python
            resp = await sandbox.run("1 + 1", RunOptions(timeout_ms=5000))
            ```
        """
        payload = json.dumps({"code": code, "max_output_kb": self._max_output_kb})
        timeout = options.timeout_seconds
        process = await asyncio.create_subprocess_exec(
            self._python,
            str(_worker_path()),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(payload.encode("utf-8")),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.warning("Sandbox execution timed out", timeout=timeout)
            return SandboxResponse(
                success=False,
                error=f"Execution timed out after {timeout:g}s",
            )

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        logger.debug("Sandbox worker exited", returncode=process.returncode)

        if not stdout.strip():
            return SandboxResponse(
                success=False,
                stderr=stderr,
                error=f"Sandbox worker exited with code {process.returncode}",
            )
        try:
            parsed = json.loads(stdout)
        except json.JSONDecodeError:
            return SandboxResponse(
                success=False,
                stderr=stderr,
                error="Sandbox worker returned invalid JSON",
            )
        response = SandboxResponse.coerce(parsed)
        if response is None:
            return SandboxResponse(
                success=False,
                stderr=stderr,
                error="Sandbox worker returned invalid JSON",
            )
        return response
