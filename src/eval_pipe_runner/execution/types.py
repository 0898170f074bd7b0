from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ..models import SandboxConfig

StreamText = str | Sequence[str] | None


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Options handed to a sandbox run primitive.

    Example:
        ```python
        opts = RunOptions(timeout_ms=30_000)
        ```
    """

    timeout_ms: int
    config: SandboxConfig = field(default_factory=SandboxConfig)

    @property
    def timeout_seconds(self) -> float:
        """Return the timeout in seconds.

        Example:
            ```python
            RunOptions(timeout_ms=1500).timeout_seconds  # 1.5
            ```
        """
        return self.timeout_ms / 1000


@dataclass(frozen=True, slots=True)
class SandboxResponse:
    """Raw answer of a sandbox run primitive.

    `stdout`/`stderr` may be a single string or a sequence of chunks.
    `json_result` is the JSON-encoded return value when the sandbox could
    encode it; `result` is the structured value.

    Example:
        ```python
        resp = SandboxResponse(success=True, result={"score": 1.0}, stdout=["hi"])
        ```
    """

    success: bool = False
    result: Any = None
    json_result: str | None = None
    stdout: StreamText = None
    stderr: StreamText = None
    error: str | None = None

    @classmethod
    def coerce(cls, raw: Any) -> "SandboxResponse | None":
        """Normalize whatever a primitive returned into a response or `None`.

        Accepts a `SandboxResponse`, a mapping using `jsonResult` or
        `json_result`, or `None`. Anything else is treated as absent.

        Example:
            ```python
            resp = SandboxResponse.coerce({"success": True, "jsonResult": "{}"})
            ```
        """
        if raw is None or isinstance(raw, SandboxResponse):
            return raw
        if not isinstance(raw, Mapping):
            return None
        json_result = raw.get("jsonResult", raw.get("json_result"))
        error = raw.get("error")
        return cls(
            success=raw.get("success") is True,
            result=raw.get("result"),
            json_result=json_result if isinstance(json_result, str) else None,
            stdout=raw.get("stdout"),
            stderr=raw.get("stderr"),
            error=None if error is None else str(error),
        )
