from __future__ import annotations

import asyncio
import sys
import types

import pytest

from eval_pipe_runner import AdapterSettings, LocalSandbox, load_sandbox, resolve_sandbox
from eval_pipe_runner.errors import SandboxUnavailableError
from eval_pipe_runner.execution.registry import FunctionSandbox, UnavailableSandbox
from eval_pipe_runner.execution.types import RunOptions


@pytest.fixture
def fake_module(monkeypatch: pytest.MonkeyPatch) -> types.ModuleType:
    module = types.ModuleType("fake_sandboxes")

    class ClassSandbox:
        name = "class-sandbox"

        async def run(self, code, options):
            return {"success": True, "result": {"score": 1.0}}

    async def run_function(code, options):
        return {"success": True, "result": options.timeout_ms}

    module.ClassSandbox = ClassSandbox
    module.run_function = run_function
    module.not_callable = 7
    monkeypatch.setitem(sys.modules, "fake_sandboxes", module)
    return module


def test_local_backend_uses_settings() -> None:
    sandbox = resolve_sandbox("local", AdapterSettings(max_output_kb=64))
    assert isinstance(sandbox, LocalSandbox)
    assert sandbox.name == "local"


def test_unknown_backend_name_raises() -> None:
    with pytest.raises(SandboxUnavailableError, match="Unknown sandbox backend") as exc:
        resolve_sandbox("pyodide")
    assert exc.value.backend == "pyodide"


def test_missing_module_raises() -> None:
    with pytest.raises(SandboxUnavailableError, match="Cannot import sandbox module"):
        resolve_sandbox("definitely_not_installed_sandbox:Runner")


def test_class_target_is_instantiated(fake_module: types.ModuleType) -> None:
    sandbox = resolve_sandbox("fake_sandboxes:ClassSandbox")
    assert isinstance(sandbox, fake_module.ClassSandbox)


def test_function_target_is_adapted(fake_module: types.ModuleType) -> None:
    sandbox = resolve_sandbox("fake_sandboxes:run_function")
    assert isinstance(sandbox, FunctionSandbox)
    raw = asyncio.run(sandbox.run("x = 1", RunOptions(timeout_ms=1234)))
    assert raw == {"success": True, "result": 1234}


def test_missing_attribute_raises(fake_module: types.ModuleType) -> None:
    with pytest.raises(SandboxUnavailableError, match="Cannot find 'nope'"):
        resolve_sandbox("fake_sandboxes:nope")


def test_non_invocable_target_raises(fake_module: types.ModuleType) -> None:
    with pytest.raises(SandboxUnavailableError, match="not invocable"):
        resolve_sandbox("fake_sandboxes:not_callable")


def test_load_sandbox_never_raises() -> None:
    sandbox = load_sandbox("missing_pkg:Sandbox")
    assert isinstance(sandbox, UnavailableSandbox)
    with pytest.raises(SandboxUnavailableError):
        asyncio.run(sandbox.run("x = 1", RunOptions(timeout_ms=1000)))
