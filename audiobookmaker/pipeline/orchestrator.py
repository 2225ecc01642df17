"""Conversion orchestration for Audiobook Maker.

Responsibilities:
- Drive one document through analyze, configure, synthesize, and assemble stages.
- Persist progress after every finished chunk so interrupted runs resume exactly.
- Resume, relocate, and re-assemble stored sessions.

Key types:
- `ConversionOrchestrator`: the conversion state machine.

Notes:
- Chunks are synthesized strictly one at a time, in index order.
- Failures are recorded on the session before the error propagates; nothing
  is retried automatically.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import TypeVar, Union

from ..errors import (
    AssemblyError,
    BackendError,
    ResumeError,
    SessionNotFoundError,
    ValidationError,
)
from ..io.document_extractor import DocumentExtractor
from ..io.session_store import SessionStore
from ..models.datatypes import (
    LAYOUT_SINGLE,
    OUTPUT_LAYOUTS,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    ChunkProgress,
    ConversionOptions,
    DocumentAnalysis,
    Session,
    SessionStats,
    TextChunk,
)
from ..telemetry.cost_tracker import CostTracker, estimate_cost_usd, estimate_seconds
from ..telemetry.logger import RunLogger
from ..text.segmenter import DEFAULT_MAX_CHUNK_SIZE, TextSegmenter
from ..tts.backend import SpeechBackend
from .resume import (
    NEXT_STEP_ASSEMBLE,
    assess_resume,
    check_chunk_count,
    require_chunk_files,
    require_relocation_match,
    require_source,
    require_unchanged_source,
)

_StageResult = TypeVar("_StageResult")

STATE_CREATED = "created"
STATE_ANALYZING = "analyzing"
STATE_CONFIGURING = "configuring"
STATE_PROCESSING = "processing"
STATE_ASSEMBLING = "assembling"
STATE_COMPLETED = "completed"
STATE_FAILED = "failed"

_STAGE_STATES = {
    "analyze": STATE_ANALYZING,
    "configure": STATE_CONFIGURING,
    "synthesize": STATE_PROCESSING,
    "assemble": STATE_ASSEMBLING,
}

BackendFactory = Callable[[ConversionOptions], SpeechBackend]
ConversionSettings = Union[ConversionOptions, Callable[[DocumentAnalysis], ConversionOptions]]


class ConversionOrchestrator:
    """Coordinate segmentation, synthesis, persistence, and assembly for sessions."""

    def __init__(
        self,
        store: SessionStore,
        backend_factory: BackendFactory,
        extractor: DocumentExtractor | None = None,
        run_logger: RunLogger | None = None,
        progress_callback: Callable[[ChunkProgress], None] | None = None,
    ) -> None:
        """Initialize collaborators and optional logging and progress hooks.

        Assembly goes through the backend built by `backend_factory`, so the
        factory is also called for sessions that only need assembling.
        """

        self.store = store
        self._backend_factory = backend_factory
        self.extractor = extractor or DocumentExtractor()
        self._run_logger = run_logger
        self._progress_callback = progress_callback
        self.state = STATE_CREATED

    def analyze(
        self,
        source_path: Path,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        provider: str = "openai",
        model: str | None = None,
    ) -> DocumentAnalysis:
        """Extract and segment a document and estimate the conversion cost."""

        def action() -> DocumentAnalysis:
            document = self.extractor.extract(source_path)
            chunks = TextSegmenter(max_chunk_size).to_chunks(document.text)
            existing = self.store.find_by_path(source_path)
            return DocumentAnalysis(
                source_path=source_path.expanduser().resolve(),
                document=document,
                chunks=tuple(chunks),
                max_chunk_size=max_chunk_size,
                estimated_cost_usd=estimate_cost_usd(provider, model, document.character_count),
                estimated_seconds=estimate_seconds(provider, model, document.character_count),
                resumable_session=existing if existing and existing.is_resumable else None,
            )

        return self._run_stage("analyze", action)

    def convert(
        self,
        source_path: Path,
        settings: ConversionSettings,
        confirm_resume: Callable[[Session], bool] | None = None,
    ) -> Session:
        """Convert one document, offering to resume an interrupted session first.

        Args:
            source_path: `.txt` or `.pdf` document.
            settings: Conversion options, or a callable that picks them from the
                analysis result (used by interactive front ends). Chunks and
                estimates are recomputed for whatever options the callable picks.
            confirm_resume: Decides whether to resume a matching incomplete
                session; `None` accepts the offer.

        Returns:
            The final session record.
        """

        if isinstance(settings, ConversionOptions):
            analysis = self.analyze(
                source_path, settings.max_chunk_size, settings.provider, settings.model
            )
        else:
            analysis = self.analyze(source_path)

        resumable = analysis.resumable_session
        if resumable is not None:
            if confirm_resume is None or confirm_resume(resumable):
                return self.resume(resumable.id)
            if self._run_logger is not None:
                self._run_logger.log_warning("configure", "resume_declined", session=resumable.id)

        options, scoped = self._run_stage(
            "configure", lambda: self._configure(analysis, settings)
        )
        backend = self._backend_factory(options)
        backend.validate_options(options.synthesis_options())

        chunks = scoped.chunks
        session = self.store.create(scoped.source_path, options)
        output_dir = options.output_directory / f"{scoped.source_path.stem}_{session.id}"
        session = self.store.update(
            session.id,
            total_chunks=len(chunks),
            status=STATUS_PROCESSING,
            output_dir=output_dir,
        )
        self._log_session(
            "created",
            session,
            total_chunks=len(chunks),
            estimated_cost_usd=scoped.estimated_cost_usd,
        )
        session = self._synthesize(session, list(chunks), backend)
        return self._finish(session, backend)

    def resume(self, session_id: str, relocated_path: Path | None = None) -> Session:
        """Continue a stored session from its first unfinished chunk.

        Completed sessions are returned unchanged. Sessions whose chunks are
        all synthesized only run assembly.

        Raises:
            ResourceError: If the source is missing and no matching relocation is given.
            ResumeError: If the chunk count changed, the source was edited since
                the session started, or prior chunk files are gone.
        """

        session = self.store.require(session_id)
        if session.status == STATUS_COMPLETED:
            self._log_session("already_completed", session)
            return session

        if relocated_path is not None:
            session = self.relocate(session_id, relocated_path)

        assessment = assess_resume(session)
        if assessment.next_step == NEXT_STEP_ASSEMBLE:
            require_chunk_files(assessment)
            self._log_session("resumed", session, next_step=assessment.next_step)
            return self._finish(session, self._backend_factory(session.options))

        source = require_source(session)
        options = session.options
        document = self.extractor.extract(source)
        chunks = TextSegmenter(options.max_chunk_size).to_chunks(document.text)
        if session.progress.total_chunks == 0:
            session = self.store.update(
                session_id,
                total_chunks=len(chunks),
                output_dir=session.output_dir
                or options.output_directory / f"{source.stem}_{session.id}",
            )
        check_chunk_count(session, len(chunks))
        require_unchanged_source(session, source)
        require_chunk_files(assessment)

        backend = self._backend_factory(options)
        backend.validate_options(options.synthesis_options())
        session = self.store.update(session_id, status=STATUS_PROCESSING)
        self._log_session(
            "resumed",
            session,
            next_step=assessment.next_step,
            from_chunk=session.progress.completed_chunks + 1,
        )
        remaining = [
            chunk for chunk in chunks if chunk.index > session.progress.completed_chunks
        ]
        session = self._synthesize(session, remaining, backend)
        return self._finish(session, backend)

    def assemble(self, session_id: str) -> Session:
        """Retry only the assembly step of a fully synthesized session."""

        session = self.store.require(session_id)
        progress = session.progress
        if progress.total_chunks == 0 or progress.completed_chunks < progress.total_chunks:
            raise ResumeError(
                stage="assemble",
                detail=(
                    f"Session `{session_id}` has {progress.completed_chunks} of "
                    f"{progress.total_chunks} chunks synthesized."
                ),
                hint=f"Run `audiobookmaker resume {session_id}` to finish synthesis first.",
            )
        require_chunk_files(assess_resume(session))
        return self._finish(session, self._backend_factory(session.options))

    def relocate(self, session_id: str, new_path: Path) -> Session:
        """Point a session at its moved source document after a size/name check."""

        session = self.store.require(session_id)
        resolved = require_relocation_match(session, new_path)
        session = self.store.update(session_id, source_path=resolved)
        self._log_session("relocated", session)
        return session

    def delete_session(self, session_id: str, remove_outputs: bool = True) -> None:
        """Delete one session and its session-scoped outputs."""

        if not self.store.delete(session_id, remove_outputs=remove_outputs):
            raise SessionNotFoundError(session_id)
        if self._run_logger is not None:
            self._run_logger.log_session_event("deleted", session_id)

    def clear_sessions(self, remove_outputs: bool = True) -> int:
        """Delete every stored session and return the count."""

        return self.store.clear(remove_outputs=remove_outputs)

    def list_sessions(self, limit: int | None = None) -> list[Session]:
        """Return stored sessions, most recently updated first."""

        return self.store.list(limit=limit)

    def session_stats(self) -> SessionStats:
        """Return session counts by status."""

        return self.store.stats()

    def _configure(
        self, analysis: DocumentAnalysis, settings: ConversionSettings
    ) -> tuple[ConversionOptions, DocumentAnalysis]:
        """Resolve and check options, then scope the analysis to them.

        Re-segments when the options ask for a different chunk size and
        recomputes estimates for the chosen provider and model.
        """

        options = settings if isinstance(settings, ConversionOptions) else settings(analysis)
        if options.output_layout not in OUTPUT_LAYOUTS:
            raise ValidationError(
                stage="configure",
                detail=f"Unknown output layout `{options.output_layout}`.",
                hint=f"Choose one of: {', '.join(OUTPUT_LAYOUTS)}.",
            )
        chunks = analysis.chunks
        if options.max_chunk_size != analysis.max_chunk_size:
            chunks = tuple(
                TextSegmenter(options.max_chunk_size).to_chunks(analysis.document.text)
            )
        characters = analysis.document.character_count
        return options, replace(
            analysis,
            chunks=chunks,
            max_chunk_size=options.max_chunk_size,
            estimated_cost_usd=estimate_cost_usd(options.provider, options.model, characters),
            estimated_seconds=estimate_seconds(options.provider, options.model, characters),
        )

    def _synthesize(
        self, session: Session, chunks: list[TextChunk], backend: SpeechBackend
    ) -> Session:
        """Synthesize `chunks`, persisting each completion before the next starts."""

        output_dir = session.output_dir
        if output_dir is None:
            raise ResumeError(
                stage="synthesize",
                detail=f"Session `{session.id}` has no output directory.",
            )

        chunk_sizes = {chunk.index: len(chunk.text) for chunk in chunks}
        tracker = CostTracker(session.options.provider, session.options.model)

        def action() -> Session:
            current = session
            try:
                for event in backend.iter_chunks(
                    chunks,
                    session.options.synthesis_options(),
                    output_dir,
                    total=session.progress.total_chunks,
                ):
                    current = self.store.update(
                        session.id, current_chunk=event.current, file_path=event.file_path
                    )
                    tracker.add_chunk(chunk_sizes[event.current])
                    if self._run_logger is not None:
                        self._run_logger.log_chunk_complete(session.id, event.current, event.total)
                    if self._progress_callback is not None:
                        self._progress_callback(event)
            except BackendError as exc:
                self.store.update(
                    session.id,
                    error=exc.detail,
                    error_chunk=exc.chunk_index,
                    status=STATUS_FAILED,
                )
                raise
            finally:
                self._log_session("synthesized", session, **tracker.summary())
            return current

        return self._run_stage("synthesize", action)

    def _finish(self, session: Session, backend: SpeechBackend) -> Session:
        """Assemble when the layout needs it, then mark the session completed."""

        if not session.options.requires_assembly():
            session = self.store.update(session.id, status=STATUS_COMPLETED)
        else:
            session = self._run_stage("assemble", lambda: self._assemble(session, backend))
        self.state = STATE_COMPLETED
        self._log_session("completed", session)
        return session

    def _assemble(self, session: Session, backend: SpeechBackend) -> Session:
        files = session.progress.ordered_files()
        extension = files[0].suffix if files else ""
        output_dir = session.output_dir or files[0].parent
        output_path = output_dir / f"{Path(session.source_name).stem}_audiobook{extension}"
        try:
            backend.concatenate(files, output_path)
        except AssemblyError as exc:
            self.store.update(session.id, error=exc.detail, status=STATUS_FAILED)
            raise
        session = self.store.update(
            session.id, final_output_path=output_path, status=STATUS_COMPLETED
        )
        if session.options.output_layout == LAYOUT_SINGLE:
            backend.assembler.cleanup_segments(files)
        return session

    def _log_session(self, event: str, session: Session, **context: object) -> None:
        if self._run_logger is not None:
            self._run_logger.log_session_event(event, session.id, **context)

    def _run_stage(
        self,
        stage_name: str,
        action: Callable[[], _StageResult],
    ) -> _StageResult:
        """Run one named stage and emit start/complete/failure telemetry events."""

        self.state = _STAGE_STATES.get(stage_name, self.state)
        if self._run_logger is not None:
            self._run_logger.log_stage_start(stage_name)
        try:
            result = action()
        except Exception as exc:
            self.state = STATE_FAILED
            if self._run_logger is not None:
                self._run_logger.log_stage_failure(stage_name, type(exc).__name__)
            raise
        if self._run_logger is not None:
            self._run_logger.log_stage_complete(stage_name)
        return result
