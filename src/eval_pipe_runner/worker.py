from __future__ import annotations

import ast
import builtins
import contextlib
import io
import json
import sys
import traceback
from typing import Any


def _split_final_expression(tree: ast.Module) -> tuple[ast.Module, ast.Expression | None]:
    """Detach a trailing expression statement so its value can be returned.

    Example:
        ```python
        body, final = _split_final_expression(ast.parse("x = 1\\nx + 1"))
        ```
    """
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        last = tree.body.pop()
        final = ast.Expression(body=last.value)
        return tree, final
    return tree, None


def _stream_lines(text: str, max_output_kb: int) -> list[str]:
    """Truncate captured output and split it into lines.

    Example:
        ```python
        lines = _stream_lines("a\\nb\\n", max_output_kb=128)  # ["a", "b"]
        ```
    """
    return text[: max_output_kb * 1024].splitlines()


def _encode_result(value: Any) -> tuple[Any, str | None]:
    """Return a JSON-safe copy of the value plus its strict JSON encoding.

    Example:
        ```python
        result, json_result = _encode_result({"score": 1.0})
        ```
    """
    try:
        json_result: str | None = json.dumps(value, allow_nan=False)
    except (TypeError, ValueError):
        json_result = None
    try:
        safe = json.loads(json.dumps(value, default=str, allow_nan=False))
    except (TypeError, ValueError):
        safe = repr(value)
    return safe, json_result


def _normalize_system_exit(exit_code: Any) -> tuple[bool, str | None]:
    """Map a SystemExit code to success plus optional error text.

    Example:
        ```python
        ok, error = _normalize_system_exit(1)  # (False, "SystemExit: 1")
        ```
    """
    if exit_code in (None, 0):
        return True, None
    return False, f"SystemExit: {exit_code}"


def _response(
    *,
    success: bool,
    stdout: str = "",
    stderr: str = "",
    max_output_kb: int = 1024,
    value: Any = None,
    error: str | None = None,
) -> dict[str, Any]:
    """Build the worker's JSON response in the sandbox response shape.

    Example:
        ```python
        resp = _response(success=True, value={"score": 1.0})
        ```
    """
    resp: dict[str, Any] = {
        "success": success,
        "stdout": _stream_lines(stdout, max_output_kb),
        "stderr": _stream_lines(stderr, max_output_kb),
    }
    if success:
        resp["result"], resp["jsonResult"] = _encode_result(value)
    if error is not None:
        resp["error"] = error
    return resp


def main() -> int:
    """Execute one wrapped program read from stdin and answer on stdout.

    Example:
        ```python
        # echo '{"code": "1 + 1"}' | python worker.py
        ```
    """
    req = json.loads(sys.stdin.read() or "{}")
    code = str(req.get("code", ""))
    max_output_kb = int(req.get("max_output_kb", 1024))

    try:
        tree = ast.parse(code, filename="<sandbox>", mode="exec")
    except SyntaxError as exc:
        resp = _response(success=False, error=f"SyntaxError: {exc}", max_output_kb=max_output_kb)
        sys.stdout.write(json.dumps(resp))
        return 1

    body, final = _split_final_expression(tree)
    exec_globals: dict[str, Any] = {"__name__": "__main__", "__builtins__": builtins}
    stdout_buffer = io.StringIO()
    stderr_buffer = io.StringIO()
    value: Any = None
    success = True
    error: str | None = None

    try:
        with (
            contextlib.redirect_stdout(stdout_buffer),
            contextlib.redirect_stderr(stderr_buffer),
        ):
            exec(compile(body, "<sandbox>", "exec"), exec_globals, exec_globals)
            if final is not None:
                value = eval(compile(final, "<sandbox>", "eval"), exec_globals, exec_globals)
    except SystemExit as exc:
        success, error = _normalize_system_exit(exc.code)
        if isinstance(exc.code, str):
            stderr_buffer.write(f"{exc.code}\n")
    except Exception as exc:
        success = False
        error = f"{type(exc).__name__}: {exc}"
        stderr_buffer.write(traceback.format_exc())

    resp = _response(
        success=success,
        stdout=stdout_buffer.getvalue(),
        stderr=stderr_buffer.getvalue(),
        max_output_kb=max_output_kb,
        value=value,
        error=error,
    )
    sys.stdout.write(json.dumps(resp, default=str))
    return 0 if success else 1


if __name__ == "__main__":
    raise SystemExit(main())
