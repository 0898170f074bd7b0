import ast

import pytest

from eval_pipe_runner.wrapper import COMPLETION_REASON, to_python_literal, wrap_code


def _run_wrapped(code: str, params=None):
    """Execute the wrapped program in-process and return its final value."""
    namespace: dict = {"__name__": "__main__"}
    exec(compile(wrap_code(code, params), "<wrapped>", "exec"), namespace)
    return namespace["result"]


def test_wrap_is_deterministic() -> None:
    code = "def main(args):\n    return {'score': args.x}"
    params = {"x": 0.5, "nested": {"a": [1, None, "null"]}}
    assert wrap_code(code, params) == wrap_code(code, params)


def test_no_main_yields_default_envelope() -> None:
    result = _run_wrapped("x = 1")
    assert result == {"score": 1.0, "reason": COMPLETION_REASON}


def test_sync_main_receives_args_object() -> None:
    code = """
def main(args):
    return {"score": args.expected, "seen": args["expected"], "has": "expected" in args}
"""
    result = _run_wrapped(code, {"expected": 0.5})
    assert result == {"score": 0.5, "seen": 0.5, "has": True}


def test_async_main_is_awaited() -> None:
    code = """
import asyncio

async def main(args):
    await asyncio.sleep(0)
    return {"score": 0.75, "reason": args.params["why"]}
"""
    result = _run_wrapped(code, {"why": "close enough"})
    assert result == {"score": 0.75, "reason": "close enough"}


def test_main_returning_none_gets_default_envelope() -> None:
    result = _run_wrapped("def main(args):\n    return None")
    assert result == {"score": 1.0, "reason": COMPLETION_REASON}


def test_non_primitive_result_records_type_name() -> None:
    code = """
class Verdict:
    pass

def main(args):
    return Verdict()
"""
    result = _run_wrapped(code)
    assert result["score"] == 1.0
    assert "Verdict" in result["reason"]


def test_primitive_results_pass_through() -> None:
    assert _run_wrapped("def main(args):\n    return [1, 2]") == [1, 2]
    assert _run_wrapped("def main(args):\n    return 'ok'") == "ok"
    assert _run_wrapped("def main(args):\n    return {'custom': True}") == {"custom": True}


def test_main_exception_becomes_zero_score(capsys: pytest.CaptureFixture[str]) -> None:
    code = "def main(args):\n    raise ValueError('bad input')"
    result = _run_wrapped(code)
    err = capsys.readouterr().err

    assert result["score"] == 0.0
    assert "ValueError: bad input" in result["reason"]
    assert "ValueError: bad input" in err
    assert "Traceback" in err


def test_non_identifier_keys_stay_dict_only() -> None:
    code = """
def main(args):
    return {
        "dict_value": args["my-key"],
        "has_attr": hasattr(args, "my-key"),
        "ok": args.ok,
    }
"""
    result = _run_wrapped(code, {"my-key": 3, "ok": True})
    assert result == {"dict_value": 3, "has_attr": False, "ok": True}


def test_params_key_does_not_clobber_params_dict() -> None:
    code = "def main(args):\n    return {'score': 1.0, 'value': args.params['params']}"
    result = _run_wrapped(code, {"params": "inner"})
    assert result["value"] == "inner"


def test_null_params_become_none_literal() -> None:
    wrapped = wrap_code("x = 1", {"a": None})
    initializer = next(line for line in wrapped.splitlines() if line.startswith("args = {'a'"))

    assert initializer == "args = {'a': None}"
    assert ast.literal_eval(initializer.removeprefix("args = ")) == {"a": None}


def test_strings_containing_null_are_not_rewritten() -> None:
    literal = to_python_literal({"text": "null and nullable", "flag": False, "n": None})
    assert ast.literal_eval(literal) == {"text": "null and nullable", "flag": False, "n": None}


def test_empty_params_skip_initializer() -> None:
    wrapped = wrap_code("x = 1", {})
    assert "args = {}\n" in wrapped
    assert wrapped.count("args = ") == 1


def test_user_code_is_embedded_verbatim() -> None:
    code = "# marker line\nvalue = 'keep me'\n"
    assert code in wrap_code(code)
