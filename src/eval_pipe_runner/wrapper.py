from __future__ import annotations

import math
from typing import Any, Mapping

COMPLETION_REASON = "execution completed"

_PREFIX = '''\
import asyncio
import inspect
import sys
import traceback


class Args:
    def __init__(self, params):
        self.params = params or {}
        for key, value in self.params.items():
            if isinstance(key, str) and key.isidentifier() and key != 'params' and not hasattr(Args, key):
                setattr(self, key, value)

    def __getitem__(self, key):
        return self.params[key]

    def __contains__(self, key):
        return key in self.params

    def get(self, key, default=None):
        return self.params.get(key, default)


class Output(dict):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if 'score' not in self:
            self['score'] = 1.0
        if 'reason' not in self:
            self['reason'] = %(completion)r


async def _await_entry_result(pending):
    return await pending


args = {}
'''

_SUFFIX = '''

result = None
try:
    if 'main' in globals() and callable(main):
        result = main(Args(args))
        if inspect.isawaitable(result):
            result = asyncio.run(_await_entry_result(result))
    else:
        result = None

    if result is None:
        result = Output(score=1.0, reason=%(completion)r)
    elif not isinstance(result, (dict, list, tuple, str, int, float, bool)):
        result = Output(score=1.0, reason=f'%(completion)s, result type: {type(result).__name__}')

except Exception as e:
    error_msg = f"{type(e).__name__}: {str(e)}"
    print(error_msg, file=sys.stderr)
    traceback.print_exc()
    result = Output(score=0.0, reason=f'execution failed: {error_msg}')

result
'''


def to_python_literal(value: Any) -> str:
    """Serialize a decoded JSON value as Python literal source.

    JSON `null`/`true`/`false` become `None`/`True`/`False` at the leaf, so
    strings that merely contain those words are never touched.

    Example:
        ```python
        to_python_literal({"a": None, "b": "null"})  # "{'a': None, 'b': 'null'}"
        ```
    """
    if value is None:
        return "None"
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, int):
        return repr(int(value))
    if isinstance(value, float):
        if math.isfinite(value):
            return repr(value)
        return f"float({repr(str(value))})"
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, Mapping):
        items = ", ".join(
            f"{to_python_literal(key)}: {to_python_literal(item)}" for key, item in value.items()
        )
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(to_python_literal(item) for item in value) + "]"
    return repr(str(value))


def wrap_code(code: str, params: Mapping[str, Any] | None = None) -> str:
    """Wrap a user script into a program that evaluates to a normalized output.

    The program defines `Args`/`Output`, seeds `args`, runs the user body
    verbatim, then calls an optional `main(Args(args))` (awaiting it when it
    returns an awaitable) and leaves the normalized value as its final
    expression.

    Example:
        ```python
        program = wrap_code("def main(args):\\n    return {'score': args.x}", {"x": 0.5})
        ```
    """
    substitutions = {"completion": COMPLETION_REASON}
    prefix = _PREFIX % substitutions
    suffix = _SUFFIX % substitutions
    if isinstance(params, Mapping) and len(params) > 0:
        return prefix + f"args = {to_python_literal(params)}\n" + code + suffix
    return prefix + code + suffix
