from __future__ import annotations

import argparse
import asyncio
import json
from functools import partial
from pathlib import Path
from typing import Any, Never, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.pretty import Pretty
from rich.syntax import Syntax
from rich.table import Table
from rich_argparse import RawTextRichHelpFormatter

from eval_pipe_runner import AdapterSettings, ExecutionRequest, SandboxExecutor, wrap_code
from eval_pipe_runner.execution.capabilities import capabilities_for_backend
from eval_pipe_runner.execution.registry import BUILTIN_BACKENDS, load_sandbox
from eval_pipe_runner.log import configure_logging
from eval_pipe_runner.models import SandboxConfig
from eval_pipe_runner.pipe import run_pipe, write_pipe_error

_CONSOLE = Console(no_color=False)


class _CLIHelpFormatter(RawTextRichHelpFormatter):
    """Rich formatter with explicit high-contrast CLI styles.

    Example:
        ```python
        parser = argparse.ArgumentParser(formatter_class=_CLIHelpFormatter)
        ```
    """

    styles = {
        "argparse.args": "bold cyan",
        "argparse.groups": "bold magenta",
        "argparse.help": "white",
        "argparse.metavar": "bold yellow",
        "argparse.prog": "bold bright_blue",
        "argparse.syntax": "bold bright_white",
        "argparse.text": "bright_white",
    }


_HELP_FORMATTER = partial(
    _CLIHelpFormatter,
    max_help_position=34,
    width=120,
)


class _RichArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that renders errors via Rich.

    Example:
        ```python
        parser = _RichArgumentParser(prog="python -m epr")
        ```
    """

    def error(self, message: str) -> Never:
        """Render parse errors with Rich and exit.

        Example:
            ```python
            # parser.error("invalid usage")
            ```
        """
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {message}", border_style="red"))
        self.print_help()
        raise SystemExit(2)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser for the eval-pipe-runner operator commands.

    Example:
        ```python
        parser = build_parser()
        ```
    """
    parser = _RichArgumentParser(
        prog="python -m epr",
        description=(
            "eval-pipe-runner CLI\n"
            "Run scripts through the sandbox adapter or serve one pipe request.\n"
            "Logs go to stderr; the pipe command writes exactly one JSON object to stdout."
        ),
        epilog=(
            "Quick Examples:\n"
            "  echo '{\"code\": \"def main(args):\\n    return {}\"}' | python -m epr pipe\n"
            "  python -m epr run score.py --params '{\"expected\": 3}'\n"
            "  python -m epr wrap score.py\n"
            "  python -m epr backends\n\n"
            "Backend Examples:\n"
            "  python -m epr --backend local run score.py\n"
            "  python -m epr --backend my_sandboxes.pyodide:PyodideSandbox pipe"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    parser.add_argument(
        "--config",
        help=(
            "Path to a TOML settings file with a [runner] table.\n"
            "Missing keys keep their bundled defaults."
        ),
    )
    parser.add_argument(
        "--backend",
        help=(
            "Sandbox backend name or import path.\n"
            "Examples: local, my_sandboxes.pyodide:PyodideSandbox"
        ),
    )
    parser.add_argument(
        "--log-level",
        help="Log level for stderr logging (default from settings: WARNING).",
    )

    sub = parser.add_subparsers(
        dest="command",
        required=True,
        parser_class=_RichArgumentParser,
    )

    sub.add_parser(
        "pipe",
        help="Serve one JSON request from stdin and write one JSON result to stdout.",
        description=(
            "Read stdin until end-of-stream, execute the request, write the result.\n"
            "Always writes exactly one JSON object, even for malformed input."
        ),
        formatter_class=_HELP_FORMATTER,
    )

    run_cmd = sub.add_parser(
        "run",
        help="Execute a script file through the configured sandbox.",
        description=(
            "Wrap the script, execute it through the sandbox backend,\n"
            "and render the normalized execution result."
        ),
        epilog=(
            "Examples:\n"
            "  python -m epr run score.py\n"
            "  python -m epr run score.py --params '{\"x\": 1}' --timeout-seconds 5"
        ),
        formatter_class=_HELP_FORMATTER,
    )
    run_cmd.add_argument("file")
    run_cmd.add_argument(
        "--params",
        help="JSON object passed to main() as args (default: none).",
    )
    run_cmd.add_argument(
        "--timeout-seconds",
        type=float,
        help="Execution timeout in seconds (default from settings: 30).",
    )

    wrap_cmd = sub.add_parser(
        "wrap",
        help="Print the wrapped program for a script file.",
        description="Show exactly what the sandbox executes for a script and params.",
        formatter_class=_HELP_FORMATTER,
    )
    wrap_cmd.add_argument("file")
    wrap_cmd.add_argument(
        "--params",
        help="JSON object seeded as args (default: none).",
    )

    sub.add_parser(
        "backends",
        help="List built-in sandbox backends and their capabilities.",
        description="Show which pass-through config toggles each built-in backend enforces.",
        formatter_class=_HELP_FORMATTER,
    )

    return parser


def build_settings(args: argparse.Namespace) -> AdapterSettings:
    """Create settings from the config file and global CLI overrides.

    Example:
        ```python
        settings = build_settings(args)
        ```
    """
    settings = AdapterSettings.from_file(args.config) if args.config else AdapterSettings()
    if args.backend:
        settings.backend = args.backend
    if args.log_level:
        settings.log_level = args.log_level
    return settings


def _parse_params(raw: str | None) -> dict[str, Any] | None:
    """Parse the --params JSON object.

    Example:
        ```python
        params = _parse_params('{"x": 1}')
        ```
    """
    if raw is None:
        return None
    params = json.loads(raw)
    if not isinstance(params, dict):
        raise ValueError("--params must be a JSON object")
    return params


def _print_backends() -> None:
    """Render built-in backends and capability flags in a rich table.

    Example:
        ```python
        _print_backends()
        ```
    """
    table = Table(title="Sandbox Backends")
    table.add_column("Backend", style="cyan")
    table.add_column("Timeout")
    table.add_column("Memory Limit")
    table.add_column("Network Policy")
    table.add_column("Filesystem Policy")
    table.add_column("Process Policy")
    for name in BUILTIN_BACKENDS:
        caps = capabilities_for_backend(name)
        table.add_row(
            name,
            *(
                "yes" if flag else "no"
                for flag in (
                    caps.supports_timeout,
                    caps.supports_memory_limit,
                    caps.supports_network_policy,
                    caps.supports_filesystem_policy,
                    caps.supports_process_policy,
                )
            ),
        )
    _CONSOLE.print(table)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the `epr` CLI command handler.

    Example:
        ```python
        code = main(["run", "score.py"])
        ```
    """
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        settings = build_settings(args)
        configure_logging(settings.log_level, settings.log_format)
    except (OSError, ValueError) as exc:
        if args.command == "pipe":
            write_pipe_error(exc)
            return 0
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {exc}", border_style="red"))
        return 2

    if args.command == "pipe":
        run_pipe(settings)
        return 0
    if args.command == "backends":
        _print_backends()
        return 0

    try:
        code = Path(args.file).read_text(encoding="utf-8")
        params = _parse_params(args.params)
    except (OSError, ValueError) as exc:
        _CONSOLE.print(Panel.fit(f"[bold red]Error:[/bold red] {exc}", border_style="red"))
        return 2

    if args.command == "wrap":
        _CONSOLE.print(Syntax(wrap_code(code, params), "python", line_numbers=True))
        return 0
    if args.command == "run":
        executor = SandboxExecutor(load_sandbox(settings.backend, settings), settings)
        request = ExecutionRequest(
            code=code,
            params=params,
            config=SandboxConfig(timeout_seconds=args.timeout_seconds),
        )
        result = asyncio.run(executor.execute(request))
        style = "green" if result.success else "red"
        _CONSOLE.print(
            Panel.fit(Pretty(result.to_dict()), title="Execution Result", border_style=style)
        )
        return 0 if result.success else 1

    parser.error("Unhandled command")


def entrypoint() -> None:
    """Console-script wrapper that exits with the CLI status code.

    Example:
        ```python
        # epr backends
        ```
    """
    raise SystemExit(main())
