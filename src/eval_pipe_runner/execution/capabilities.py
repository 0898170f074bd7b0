from __future__ import annotations

from dataclasses import dataclass

from ..models import SandboxConfig


@dataclass(frozen=True, slots=True)
class BackendCapabilities:
    """Which pass-through config toggles a backend actually enforces.

    Example:
        ```python
        caps = BackendCapabilities(True, False, False, False, False)
        ```
    """

    supports_timeout: bool
    supports_memory_limit: bool
    supports_network_policy: bool
    supports_filesystem_policy: bool
    supports_process_policy: bool


def capabilities_for_backend(backend: str) -> BackendCapabilities:
    """Return capability flags for a backend name.

    Unknown backends are assumed to enforce everything they are given.

    Example:
        ```python
        caps = capabilities_for_backend("local")
        ```
    """
    if backend in {"local", "localsandbox"}:
        return BackendCapabilities(True, False, False, False, False)
    return BackendCapabilities(True, True, True, True, True)


def unenforced_config_fields(backend: str, config: SandboxConfig) -> list[str]:
    """List requested config toggles the backend will not enforce.

    Example:
        ```python
        ignored = unenforced_config_fields("local", SandboxConfig(allow_net=False))
        ```
    """
    caps = capabilities_for_backend(backend)
    gates = {
        "timeout_seconds": caps.supports_timeout,
        "memory_limit_mb": caps.supports_memory_limit,
        "allow_net": caps.supports_network_policy,
        "allow_read": caps.supports_filesystem_policy,
        "allow_write": caps.supports_filesystem_policy,
        "node_modules_dir": caps.supports_filesystem_policy,
        "allow_env": caps.supports_process_policy,
        "allow_run": caps.supports_process_policy,
        "allow_ffi": caps.supports_process_policy,
    }
    return [name for name in config.requested_fields() if not gates.get(name, True)]
