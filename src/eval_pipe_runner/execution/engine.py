from __future__ import annotations

from typing import Any, Mapping, Protocol

from .types import RunOptions, SandboxResponse


class SandboxPrimitive(Protocol):
    async def run(
        self, code: str, options: RunOptions
    ) -> SandboxResponse | Mapping[str, Any] | None:
        """Run a wrapped program and return the sandbox's raw answer.

        Example:
            ```python
            raw = await sandbox.run(wrap_code("x = 1"), RunOptions(timeout_ms=30_000))
            ```
        """
        ...
