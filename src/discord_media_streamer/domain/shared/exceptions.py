"""Base exception classes for domain-level errors."""

from __future__ import annotations

from collections.abc import Sequence


class DomainError(Exception):
    """Base exception for all domain-level errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class UpstreamUnavailableError(DomainError):
    """Raised when the media backend or URL resolver cannot be reached."""

    def __init__(self, service: str, detail: str | None = None) -> None:
        msg = f"{service} is unavailable" + (f": {detail}" if detail else "")
        super().__init__(msg, code="UPSTREAM_UNAVAILABLE")
        self.service = service
        self.detail = detail


class NotPlayableError(DomainError):
    """Raised when media metadata has no playable part."""

    def __init__(self, media_id: str, message: str | None = None) -> None:
        msg = message or f"Media '{media_id}' has no playable part"
        super().__init__(msg, code="NOT_PLAYABLE")
        self.media_id = media_id


class ProcessSpawnError(DomainError):
    """Raised when the transcoder executable cannot be launched."""

    def __init__(self, executable: str, detail: str | None = None) -> None:
        msg = f"Failed to launch '{executable}'" + (f": {detail}" if detail else "")
        super().__init__(msg, code="PROCESS_SPAWN_FAILED")
        self.executable = executable


class ProcessAbnormalExitError(DomainError):
    """Raised (or logged) when a transcoder exits non-zero without being killed."""

    def __init__(self, exit_code: int | None, stderr_tail: Sequence[str] = ()) -> None:
        super().__init__(
            f"Transcoder exited abnormally with code {exit_code}",
            code="PROCESS_ABNORMAL_EXIT",
        )
        self.exit_code = exit_code
        self.stderr_tail = list(stderr_tail)


class TransportError(DomainError):
    """Raised when the real-time transport cannot join or publish."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="TRANSPORT_ERROR")


class InvalidOperationError(DomainError):
    """Raised when an operation is invalid in the current state."""

    def __init__(self, operation: str, current_state: str, message: str | None = None) -> None:
        msg = message or f"Cannot perform '{operation}' in state '{current_state}'"
        super().__init__(msg, code="INVALID_OPERATION")
        self.operation = operation
        self.current_state = current_state
