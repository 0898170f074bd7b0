from __future__ import annotations

import importlib
import inspect
from typing import Any, Callable

from ..errors import SandboxUnavailableError
from ..settings import AdapterSettings
from .engine import SandboxPrimitive
from .local_engine import LocalSandbox
from .types import RunOptions

BUILTIN_BACKENDS = ("local",)


class FunctionSandbox:
    """Adapt a plain `run(code, options)` callable to the sandbox protocol.

    Example:
        ```python
        sandbox = FunctionSandbox(my_run, name="my_module:my_run")
        ```
    """

    def __init__(self, func: Callable[..., Any], *, name: str) -> None:
        """Store the callable and its display name.

        Example:
            ```python
            sandbox = FunctionSandbox(lambda code, options: {"success": True}, name="inline")
            ```
        """
        self._func = func
        self.name = name

    async def run(self, code: str, options: RunOptions) -> Any:
        """Call the function, awaiting it when it returns an awaitable.

        Example:
            ```python
            raw = await sandbox.run("x = 1", RunOptions(timeout_ms=1000))
            ```
        """
        raw = self._func(code, options)
        if inspect.isawaitable(raw):
            raw = await raw
        return raw


class UnavailableSandbox:
    """Stand-in for a backend that failed to resolve at startup.

    Example:
        ```python
        sandbox = UnavailableSandbox(SandboxUnavailableError("missing", backend="x"))
        ```
    """

    def __init__(self, error: SandboxUnavailableError) -> None:
        """Keep the resolution error so every run can report it.

        Example:
            ```python
            sandbox = UnavailableSandbox(SandboxUnavailableError("missing"))
            ```
        """
        self.error = error
        self.name = error.backend or "unavailable"

    async def run(self, code: str, options: RunOptions) -> Any:
        """Raise the stored resolution error.

        Example:
            ```python
            await sandbox.run("x = 1", RunOptions(timeout_ms=1000))  # raises
            ```
        """
        raise self.error


def _import_target(name: str) -> Any:
    """Import `package.module:attr` and return the attribute.

    Example:
        ```python
        factory = _import_target("my_sandboxes.pyodide:PyodideSandbox")
        ```
    """
    module_name, _, attr = name.partition(":")
    if not module_name or not attr:
        raise SandboxUnavailableError(
            f"Unknown sandbox backend '{name}'. "
            f"Use one of {', '.join(BUILTIN_BACKENDS)} or 'package.module:attr'.",
            backend=name,
        )
    try:
        module = importlib.import_module(module_name)
    except Exception as exc:
        raise SandboxUnavailableError(
            f"Cannot import sandbox module '{module_name}': {exc}", backend=name
        ) from exc
    target = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise SandboxUnavailableError(
                f"Cannot find '{attr}' in sandbox module '{module_name}'", backend=name
            ) from exc
    return target


def resolve_sandbox(name: str, settings: AdapterSettings | None = None) -> SandboxPrimitive:
    """Resolve a sandbox run primitive by backend name or import path.

    Example:
        ```python
        sandbox = resolve_sandbox("local", AdapterSettings())
        ```
    """
    resolved_settings = settings or AdapterSettings()
    if name == "local":
        return LocalSandbox(
            python_executable=resolved_settings.python_executable,
            max_output_kb=resolved_settings.max_output_kb,
        )

    target = _import_target(name)
    if inspect.isclass(target):
        try:
            target = target()
        except Exception as exc:
            raise SandboxUnavailableError(
                f"Cannot construct sandbox '{name}': {exc}", backend=name
            ) from exc
        if not callable(getattr(target, "run", None)):
            raise SandboxUnavailableError(
                f"Sandbox '{name}' has no callable 'run'", backend=name
            )
        return target
    if callable(getattr(target, "run", None)):
        return target
    if callable(target):
        return FunctionSandbox(target, name=name)
    raise SandboxUnavailableError(f"Sandbox '{name}' is not invocable", backend=name)


def load_sandbox(name: str, settings: AdapterSettings | None = None) -> SandboxPrimitive:
    """Resolve a sandbox once at startup without raising.

    A failed resolution yields an `UnavailableSandbox` so each request still
    gets a well-formed error result.

    Example:
        ```python
        sandbox = load_sandbox("local")
        ```
    """
    try:
        return resolve_sandbox(name, settings)
    except SandboxUnavailableError as exc:
        return UnavailableSandbox(exc)
