"""Domain exceptions for conversion diagnostics.

Responsibilities:
- Carry stage-scoped detail and actionable hints up to the CLI.
- Separate validation, resource, backend, assembly, and resume failures.
"""

from __future__ import annotations


class PipelineStageError(RuntimeError):
    """Raised when a specific conversion stage fails."""

    def __init__(
        self,
        *,
        stage: str,
        detail: str,
        hint: str | None = None,
    ) -> None:
        """Initialize a stage-scoped pipeline error."""

        super().__init__(detail)
        self.stage = stage
        self.detail = detail
        self.hint = hint


class ValidationError(PipelineStageError):
    """Raised for invalid input or settings, before any I/O is attempted."""


class ResourceError(PipelineStageError):
    """Raised when a required file, directory, or tool is missing."""


class SessionNotFoundError(ResourceError):
    """Raised when a session id has no persisted record."""

    def __init__(self, session_id: str) -> None:
        """Initialize with the unknown session id."""

        super().__init__(
            stage="session",
            detail=f"Session `{session_id}` not found.",
            hint="Run `audiobookmaker sessions list` to see known sessions.",
        )
        self.session_id = session_id


class SessionUpdateError(PipelineStageError):
    """Raised when an update would break session progress invariants."""


class BackendError(PipelineStageError):
    """Raised when a speech backend fails to synthesize a chunk."""

    def __init__(
        self,
        *,
        stage: str = "synthesize",
        detail: str,
        hint: str | None = None,
        failure_kind: str = "unknown",
        chunk_index: int | None = None,
    ) -> None:
        """Initialize backend failure metadata."""

        super().__init__(stage=stage, detail=detail, hint=hint)
        self.failure_kind = failure_kind
        self.chunk_index = chunk_index


class AssemblyError(PipelineStageError):
    """Raised when chunk audio cannot be concatenated into one artifact."""

    def __init__(
        self,
        *,
        detail: str,
        hint: str | None = None,
        failure_kind: str = "unknown",
    ) -> None:
        """Initialize assembly failure metadata."""

        super().__init__(stage="assemble", detail=detail, hint=hint)
        self.failure_kind = failure_kind


class ResumeError(PipelineStageError):
    """Raised when a session cannot be resumed safely."""
