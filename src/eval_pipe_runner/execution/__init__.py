from .engine import SandboxPrimitive
from .types import RunOptions, SandboxResponse

__all__ = [
    "RunOptions",
    "SandboxPrimitive",
    "SandboxResponse",
]
