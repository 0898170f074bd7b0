from __future__ import annotations

import math
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any


def _default_settings_path() -> Path:
    """Return bundled default settings TOML path.

    Example:
        ```python
        path = _default_settings_path()
        ```
    """
    return Path(__file__).with_name("default_settings.toml")


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read settings TOML and return the `[runner]` table.

    Example:
        ```python
        raw = _read_settings_toml(Path("/tmp/runner.toml"))
        ```
    """
    if not path.exists():
        return {
            "backend": "local",
            "default_timeout_seconds": 30,
            "max_output_kb": 1024,
            "read_chunk_size": 65536,
            "python_executable": "",
            "log_level": "WARNING",
            "log_format": "console",
        }
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    runner_obj = raw.get("runner", raw)
    if not isinstance(runner_obj, dict):
        raise ValueError("Runner settings must be a TOML table")
    return runner_obj


def _positive_number(value: Any, field_name: str) -> float:
    """Validate a positive int/float settings field.

    Example:
        ```python
        timeout = _positive_number(30, "default_timeout_seconds")
        ```
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"'{field_name}' must be a positive number")
    return float(value)


def _optional_positive_number(value: Any, field_name: str) -> float | None:
    """Validate an optional positive number; a missing value stays `None`.

    Example:
        ```python
        bound = _optional_positive_number(None, "max_timeout_seconds")  # None
        ```
    """
    if value is None:
        return None
    return _positive_number(value, field_name)


def _positive_int(value: Any, field_name: str) -> int:
    """Validate a positive integer settings field.

    Example:
        ```python
        size = _positive_int(65536, "read_chunk_size")
        ```
    """
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"'{field_name}' must be a positive integer")
    return value


def _string(value: Any, field_name: str) -> str:
    """Validate a string settings field.

    Example:
        ```python
        backend = _string("local", "backend")
        ```
    """
    if not isinstance(value, str):
        raise ValueError(f"'{field_name}' must be a string")
    return value


_DEFAULT_SETTINGS_RAW = _read_settings_toml(_default_settings_path())
DEFAULT_BACKEND = _string(_DEFAULT_SETTINGS_RAW.get("backend", "local"), "backend")
DEFAULT_TIMEOUT_SECONDS = _positive_number(
    _DEFAULT_SETTINGS_RAW.get("default_timeout_seconds", 30), "default_timeout_seconds"
)
DEFAULT_MIN_TIMEOUT_SECONDS = _optional_positive_number(
    _DEFAULT_SETTINGS_RAW.get("min_timeout_seconds"), "min_timeout_seconds"
)
DEFAULT_MAX_TIMEOUT_SECONDS = _optional_positive_number(
    _DEFAULT_SETTINGS_RAW.get("max_timeout_seconds"), "max_timeout_seconds"
)
DEFAULT_MAX_OUTPUT_KB = _positive_int(
    _DEFAULT_SETTINGS_RAW.get("max_output_kb", 1024), "max_output_kb"
)
DEFAULT_READ_CHUNK_SIZE = _positive_int(
    _DEFAULT_SETTINGS_RAW.get("read_chunk_size", 65536), "read_chunk_size"
)
DEFAULT_PYTHON_EXECUTABLE = _string(
    _DEFAULT_SETTINGS_RAW.get("python_executable", ""), "python_executable"
)
DEFAULT_LOG_LEVEL = _string(_DEFAULT_SETTINGS_RAW.get("log_level", "WARNING"), "log_level")
DEFAULT_LOG_FORMAT = _string(_DEFAULT_SETTINGS_RAW.get("log_format", "console"), "log_format")


@dataclass(slots=True)
class AdapterSettings:
    """Process-level settings for the pipe adapter.

    Example:
        ```python
        settings = AdapterSettings(backend="local", default_timeout_seconds=10)
        ```
    """

    backend: str = DEFAULT_BACKEND
    default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    min_timeout_seconds: float | None = DEFAULT_MIN_TIMEOUT_SECONDS
    max_timeout_seconds: float | None = DEFAULT_MAX_TIMEOUT_SECONDS
    max_output_kb: int = DEFAULT_MAX_OUTPUT_KB
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    python_executable: str = DEFAULT_PYTHON_EXECUTABLE
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: str = DEFAULT_LOG_FORMAT
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate timeout bounds and log format after initialization.

        Example:
            ```python
            AdapterSettings(min_timeout_seconds=1, max_timeout_seconds=300)
            ```
        """
        if (
            self.min_timeout_seconds is not None
            and self.max_timeout_seconds is not None
            and self.min_timeout_seconds > self.max_timeout_seconds
        ):
            raise ValueError("min_timeout_seconds must not exceed max_timeout_seconds")
        if self.log_format not in {"console", "json"}:
            raise ValueError("log_format must be 'console' or 'json'")

    @classmethod
    def from_file(cls, config_path: str) -> "AdapterSettings":
        """Create settings from a TOML file, keeping defaults for missing keys.

        Example:
            ```python
            settings = AdapterSettings.from_file("/tmp/runner.toml")
            ```
        """
        path = Path(config_path)
        if not path.exists():
            raise ValueError(f"Settings file not found: {config_path}")
        raw = _read_settings_toml(path)
        return cls(
            backend=_string(raw.get("backend", DEFAULT_BACKEND), "backend"),
            default_timeout_seconds=_positive_number(
                raw.get("default_timeout_seconds", DEFAULT_TIMEOUT_SECONDS),
                "default_timeout_seconds",
            ),
            min_timeout_seconds=_optional_positive_number(
                raw.get("min_timeout_seconds", DEFAULT_MIN_TIMEOUT_SECONDS),
                "min_timeout_seconds",
            ),
            max_timeout_seconds=_optional_positive_number(
                raw.get("max_timeout_seconds", DEFAULT_MAX_TIMEOUT_SECONDS),
                "max_timeout_seconds",
            ),
            max_output_kb=_positive_int(
                raw.get("max_output_kb", DEFAULT_MAX_OUTPUT_KB), "max_output_kb"
            ),
            read_chunk_size=_positive_int(
                raw.get("read_chunk_size", DEFAULT_READ_CHUNK_SIZE), "read_chunk_size"
            ),
            python_executable=_string(
                raw.get("python_executable", DEFAULT_PYTHON_EXECUTABLE), "python_executable"
            ),
            log_level=_string(raw.get("log_level", DEFAULT_LOG_LEVEL), "log_level"),
            log_format=_string(raw.get("log_format", DEFAULT_LOG_FORMAT), "log_format"),
            config_path=config_path,
        )

    def resolve_timeout_seconds(self, requested: Any) -> float:
        """Pick the effective timeout for a request.

        Non-numeric, boolean, or non-positive values fall back to the default.
        Configured bounds apply only when set; by default none are.

        Example:
            ```python
            seconds = AdapterSettings().resolve_timeout_seconds(None)  # 30.0
            ```
        """
        if (
            isinstance(requested, bool)
            or not isinstance(requested, (int, float))
            or not math.isfinite(requested)
            or requested <= 0
        ):
            seconds = self.default_timeout_seconds
        else:
            seconds = float(requested)
        if self.min_timeout_seconds is not None:
            seconds = max(seconds, self.min_timeout_seconds)
        if self.max_timeout_seconds is not None:
            seconds = min(seconds, self.max_timeout_seconds)
        return seconds
