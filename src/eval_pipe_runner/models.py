from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

_PERMISSION_FIELDS = (
    "allow_env",
    "allow_read",
    "allow_write",
    "allow_net",
    "allow_run",
    "allow_ffi",
)


@dataclass(frozen=True, slots=True)
class SandboxConfig:
    """Permission and resource toggles passed through to the sandbox.

    Each `allow_*` field is `True`/`False` or an explicit allow-list. Only
    `timeout_seconds` is acted on by the adapter itself.

    Example:
        ```python
        config = SandboxConfig(allow_net=["api.example.com"], timeout_seconds=5)
        ```
    """

    allow_env: bool | list[str] | None = None
    allow_read: bool | list[str] | None = None
    allow_write: bool | list[str] | None = None
    allow_net: bool | list[str] | None = None
    allow_run: bool | list[str] | None = None
    allow_ffi: bool | list[str] | None = None
    node_modules_dir: str | None = None
    memory_limit_mb: Any = None
    timeout_seconds: Any = None

    @classmethod
    def from_mapping(cls, raw: Any) -> "SandboxConfig":
        """Build a config from a decoded JSON value, ignoring unknown keys.

        Anything that is not a mapping yields an empty config.

        Example:
            ```python
            config = SandboxConfig.from_mapping({"timeout_seconds": 10, "allow_net": False})
            ```
        """
        if not isinstance(raw, Mapping):
            return cls()
        values: dict[str, Any] = {}
        for name in _PERMISSION_FIELDS:
            value = raw.get(name)
            if isinstance(value, bool):
                values[name] = value
            elif isinstance(value, list):
                values[name] = [str(item) for item in value]
        node_modules_dir = raw.get("node_modules_dir")
        if isinstance(node_modules_dir, str):
            values["node_modules_dir"] = node_modules_dir
        values["memory_limit_mb"] = raw.get("memory_limit_mb")
        values["timeout_seconds"] = raw.get("timeout_seconds")
        return cls(**values)

    def requested_fields(self) -> list[str]:
        """Return names of toggles the request actually set.

        Example:
            ```python
            SandboxConfig(allow_net=True).requested_fields()  # ["allow_net"]
            ```
        """
        names = [name for name in _PERMISSION_FIELDS if getattr(self, name) is not None]
        if self.node_modules_dir is not None:
            names.append("node_modules_dir")
        if self.memory_limit_mb is not None:
            names.append("memory_limit_mb")
        if self.timeout_seconds is not None:
            names.append("timeout_seconds")
        return names


@dataclass(frozen=True, slots=True)
class ExecutionRequest:
    """One decoded request read from the pipe.

    `code` is kept as received; the executor decides whether it is usable.

    Example:
        ```python
        request = ExecutionRequest(code="def main(args):\\n    return {'score': 1}")
        ```
    """

    code: Any = None
    params: Any = None
    config: SandboxConfig = field(default_factory=SandboxConfig)

    @classmethod
    def from_payload(cls, payload: Any) -> "ExecutionRequest":
        """Build a request from a decoded JSON document.

        A document that is not an object yields an empty request, which the
        executor rejects as missing code.

        Example:
            ```python
            request = ExecutionRequest.from_payload({"code": "x = 1", "params": {"a": None}})
            ```
        """
        if not isinstance(payload, Mapping):
            return cls()
        return cls(
            code=payload.get("code"),
            params=payload.get("params"),
            config=SandboxConfig.from_mapping(payload.get("config")),
        )


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Normalized response written back to the pipe.

    Example:
        ```python
        result = ExecutionResult(success=True, status="success", execution_time=0.12)
        ```
    """

    success: bool
    status: Literal["success", "error"]
    execution_time: float
    result: Any = None
    stdout: str | None = None
    stderr: str | None = None
    sandbox_error: str | None = None

    def __post_init__(self) -> None:
        """Enforce that `success` and `status` agree.

        Example:
            ```python
            ExecutionResult(success=False, status="error", execution_time=0.0)
            ```
        """
        if self.status not in {"success", "error"}:
            raise ValueError("status must be 'success' or 'error'")
        if self.success != (self.status == "success"):
            raise ValueError("success and status must agree")
        if self.execution_time < 0:
            raise ValueError("execution_time must not be negative")

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation, dropping unset optional fields.

        Example:
            ```python
            payload = ExecutionResult(success=True, status="success", execution_time=0.1).to_dict()
            ```
        """
        payload: dict[str, Any] = {
            "success": self.success,
            "status": self.status,
            "execution_time": self.execution_time,
        }
        for name in ("result", "stdout", "stderr", "sandbox_error"):
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload
