from .executor import SandboxExecutor
from .execution.local_engine import LocalSandbox
from .execution.registry import load_sandbox, resolve_sandbox
from .models import ExecutionRequest, ExecutionResult, SandboxConfig
from .settings import AdapterSettings
from .wrapper import wrap_code

__all__ = [
    "AdapterSettings",
    "ExecutionRequest",
    "ExecutionResult",
    "LocalSandbox",
    "SandboxConfig",
    "SandboxExecutor",
    "load_sandbox",
    "resolve_sandbox",
    "wrap_code",
]
