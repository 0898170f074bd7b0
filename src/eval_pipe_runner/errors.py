from __future__ import annotations


class AdapterError(Exception):
    """Base exception for all pipe adapter errors.

    Example:
        ```python
        raise AdapterError("something went wrong")
        ```
    """


class PipeCommunicationError(AdapterError):
    """Input stream could not be read or decoded as JSON."""


class SandboxUnavailableError(AdapterError):
    """Sandbox run primitive could not be resolved or is not invocable."""

    def __init__(self, message: str, backend: str | None = None) -> None:
        """Store the backend name next to the message.

        Example:
            ```python
            err = SandboxUnavailableError("no such backend", backend="pyodide")
            ```
        """
        self.backend = backend
        super().__init__(message)
