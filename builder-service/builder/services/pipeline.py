"""
Generation pipeline orchestrator.

Stages per request:
1. Classifying  - free-text prompt to AppAnalysis
2. Planning     - AppAnalysis to GenerationPlan (chunks + shared system prompt)
3. Generating   - one completion call per chunk, strictly sequential,
                  paced by the rate limiter and wrapped in the retry policy
4. Merging      - chunk outputs folded over the base template
5. Fixing       - canonical layout, import rewriting, critical files
6. Done / Failed

A chunk failing never fails the request. When no chunk contributes anything,
or the structure fix cannot produce the critical files, the run ends in
``failed`` and the base template is returned unchanged.
"""
import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from builder.config import settings
from builder.llm.base import BaseCompletionClient
from builder.models.schemas.files import RawFileSet
from builder.models.schemas.plan import Chunk, GenerationPlan
from builder.models.schemas.progress import ProgressCallback, ProgressEvent, ProgressFile, ProgressKind
from builder.services.analysis.prompt_classifier import PromptClassifier, extract_app_name, prompt_classifier
from builder.services.generation.plan_builder import PlanBuilder, plan_builder
from builder.services.generation.response_parser import ParseFailure, ResponseParser, response_parser
from builder.services.generation.structure_fixer import (
    CriticalFileMissingAfterFix,
    StructureFixer,
    analyze_project_structure,
    structure_fixer,
)
from builder.services.generation.virtual_merger import MergeCollision, VirtualMerger, virtual_merger
from builder.services.templates.expo_base_template import ExpoBaseTemplateProvider, expo_base_template
from builder.utils.logging import get_logger, log_context, trace_async
from builder.utils.rate_limiter import RateLimiter
from builder.utils.retry import RetryPolicy, retry

logger = get_logger(__name__)


class PipelineError(Exception):
    """Raised only when not even the base template can be produced"""
    pass


class PipelineState(str, Enum):
    CLASSIFYING = "classifying"
    PLANNING = "planning"
    GENERATING = "generating"
    MERGING = "merging"
    FIXING = "fixing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ChunkReport:
    """Outcome of one chunk's generation"""
    index: int
    name: str
    succeeded: bool = False
    attempts: int = 0
    file_count: int = 0
    error: Optional[str] = None
    skipped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "succeeded": self.succeeded,
            "attempts": self.attempts,
            "file_count": self.file_count,
            "error": self.error,
            "skipped": self.skipped,
        }


@dataclass
class PipelineResult:
    files: RawFileSet
    state: PipelineState
    state_history: List[PipelineState] = field(default_factory=list)
    collisions: List[MergeCollision] = field(default_factory=list)
    chunk_reports: List[ChunkReport] = field(default_factory=list)
    cancelled: bool = False
    used_fallback: bool = False

    @property
    def succeeded_chunks(self) -> int:
        return sum(1 for report in self.chunk_reports if report.succeeded)


class _Run:
    """Mutable per-request bookkeeping"""

    def __init__(self, on_progress: Optional[ProgressCallback]):
        self.on_progress = on_progress
        self.state_history: List[PipelineState] = []

    @property
    def state(self) -> Optional[PipelineState]:
        return self.state_history[-1] if self.state_history else None

    def enter(self, state: PipelineState) -> None:
        if self.state is not state:
            self.state_history.append(state)
            logger.debug("pipeline.state.entered", extra={"state": state.value})


class GenerationPipeline:
    """
    Sequential chunked generation with fallback to the base template.

    All collaborators are injectable; the defaults are the module-level
    instances. The completion client is created from settings on first use
    when none is given.
    """

    def __init__(
        self,
        client: Optional[BaseCompletionClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        template_provider: Optional[ExpoBaseTemplateProvider] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        classifier: Optional[PromptClassifier] = None,
        planner: Optional[PlanBuilder] = None,
        parser: Optional[ResponseParser] = None,
        merger: Optional[VirtualMerger] = None,
        fixer: Optional[StructureFixer] = None,
        temperature: Optional[float] = None,
    ):
        self._client = client
        self.rate_limiter = rate_limiter or RateLimiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.template_provider = template_provider or expo_base_template
        self.sleep = sleep
        self.classifier = classifier or prompt_classifier
        self.planner = planner or plan_builder
        self.parser = parser or response_parser
        self.merger = merger or virtual_merger
        self.fixer = fixer or structure_fixer
        self.temperature = (
            temperature if temperature is not None else settings.completion_temperature
        )

    @property
    def client(self) -> BaseCompletionClient:
        if self._client is None:
            from builder.llm.openai_compatible_provider import OpenAICompatibleClient
            self._client = OpenAICompatibleClient()
        return self._client

    # ------------------------------------------------------------------ #
    # Public interface
    # ------------------------------------------------------------------ #

    def build_plan(self, prompt: Optional[str]) -> GenerationPlan:
        """Classify and plan without spending any provider calls"""
        analysis = self.classifier.classify(prompt)
        base = self._base_files(extract_app_name(prompt, analysis.type))
        return self.planner.build_plan(analysis, prompt or "", base_files=list(base))

    async def execute_plan(
        self,
        plan: GenerationPlan,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RawFileSet:
        result = await self.execute(plan, on_progress, cancel_event)
        return result.files

    async def run_pipeline(
        self,
        prompt: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RawFileSet:
        result = await self.run(prompt, on_progress, cancel_event)
        return result.files

    async def run(
        self,
        prompt: Optional[str],
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PipelineResult:
        """
        Full request: classify, plan, then execute.

        Args:
            prompt: Free-text app description (may be empty)
            on_progress: Synchronous observer; its exceptions are ignored
            cancel_event: Set to stop issuing further chunk requests

        Returns:
            PipelineResult
        """
        run = _Run(on_progress)

        with log_context(correlation_id=uuid.uuid4().hex[:12], operation="pipeline.run"):
            run.enter(PipelineState.CLASSIFYING)
            analysis = self.classifier.classify(prompt)
            self._emit(
                run,
                ProgressKind.LOG,
                f"Detected {analysis.type.value} app ({analysis.complexity.value})",
                fraction=0.05,
            )

            run.enter(PipelineState.PLANNING)
            app_name = extract_app_name(prompt, analysis.type)
            base = self._base_files(app_name, run)
            plan = self.planner.build_plan(analysis, prompt or "", base_files=list(base))
            self._emit(
                run,
                ProgressKind.LOG,
                f"Plan ready: {len(plan.chunks)} chunk(s), {plan.metadata.estimated_time}",
                fraction=0.1,
            )

            return await self._execute(plan, base, run, cancel_event)

    async def execute(
        self,
        plan: GenerationPlan,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PipelineResult:
        """Execute a plan built earlier by ``build_plan``"""
        run = _Run(on_progress)

        with log_context(correlation_id=uuid.uuid4().hex[:12], operation="pipeline.execute"):
            base = self._base_files(plan.app_name, run)
            return await self._execute(plan, base, run, cancel_event)

    # ------------------------------------------------------------------ #
    # Stages
    # ------------------------------------------------------------------ #

    @trace_async("pipeline.execute")
    async def _execute(
        self,
        plan: GenerationPlan,
        base: RawFileSet,
        run: _Run,
        cancel_event: Optional[asyncio.Event],
    ) -> PipelineResult:
        start_time = time.time()

        logger.info(
            "pipeline.execution.started",
            extra={
                "app_name": plan.app_name,
                "chunk_count": len(plan.chunks),
                "estimated_time": plan.metadata.estimated_time,
            }
        )

        # Generating
        run.enter(PipelineState.GENERATING)
        outputs: List[RawFileSet] = []
        reports: List[ChunkReport] = []
        cancelled = False

        for index, chunk in enumerate(plan.chunks, start=1):
            report = ChunkReport(index=index, name=chunk.name)
            reports.append(report)

            if self._is_cancelled(cancel_event):
                cancelled = True
                report.skipped = True
                continue

            with log_context(chunk=chunk.name):
                files = await self._generate_chunk(plan, chunk, report, run, cancel_event)
            if files:
                outputs.append(files)

            if self._is_cancelled(cancel_event):
                cancelled = True

        if cancelled:
            logger.warning(
                "pipeline.execution.cancelled",
                extra={"completed_chunks": len(outputs), "chunk_count": len(plan.chunks)}
            )

        if not outputs:
            return self._fallback(
                base, run, reports, cancelled,
                reason="No chunk produced any files"
            )

        # Merging
        run.enter(PipelineState.MERGING)
        merged = self.merger.merge_files(base, outputs, plan.analysis)
        self._emit(
            run,
            ProgressKind.LOG,
            f"Merged {len(merged.files)} files ({len(merged.collisions)} collision(s))",
            fraction=0.85,
        )

        # Fixing
        run.enter(PipelineState.FIXING)
        try:
            fixed = self.fixer.fix_structure_detailed(merged.files, plan.app_name)
        except CriticalFileMissingAfterFix as e:
            logger.error(
                "pipeline.fix.failed",
                extra={"missing": e.missing},
                exc_info=e
            )
            return self._fallback(base, run, reports, cancelled, reason=str(e))

        run.enter(PipelineState.DONE)
        total_time = int((time.time() - start_time) * 1000)

        self._emit(
            run,
            ProgressKind.COMPLETE,
            f"Generated {len(fixed.files)} files",
            fraction=1.0,
        )

        logger.info(
            "pipeline.execution.completed",
            extra={
                "total_time_ms": total_time,
                "file_count": len(fixed.files),
                "chunks": [report.to_dict() for report in reports],
                "structure": analyze_project_structure(fixed.files),
                "collisions": len(merged.collisions),
                "relocated": len(fixed.moved),
                "cancelled": cancelled,
            }
        )

        return PipelineResult(
            files=fixed.files,
            state=PipelineState.DONE,
            state_history=list(run.state_history),
            collisions=list(merged.collisions),
            chunk_reports=reports,
            cancelled=cancelled,
        )

    async def _generate_chunk(
        self,
        plan: GenerationPlan,
        chunk: Chunk,
        report: ChunkReport,
        run: _Run,
        cancel_event: Optional[asyncio.Event],
    ) -> RawFileSet:
        """One chunk through rate limiting, completion, parsing and retries"""
        chunk_count = len(plan.chunks)
        self._emit(
            run,
            ProgressKind.LOG,
            f"Generating {chunk.name} ({report.index}/{chunk_count})",
            fraction=self._chunk_fraction(report.index - 1, chunk_count),
        )

        async def attempt() -> RawFileSet:
            report.attempts += 1
            await self.rate_limiter.acquire(chunk.max_tokens)
            raw_text = await self.client.complete(
                system_prompt=plan.system_prompt,
                user_prompt=chunk.prompt,
                max_tokens=chunk.max_tokens,
                temperature=self.temperature,
            )
            files = self.parser.parse(raw_text)
            if not files:
                raise ParseFailure(f"No files parsed for chunk {chunk.name}", chunk_name=chunk.name)
            return files

        def on_retry(attempt_number: int, error: BaseException, delay: float) -> None:
            logger.warning(
                "pipeline.chunk.retrying",
                extra={
                    "chunk": chunk.name,
                    "attempt": attempt_number,
                    "delay_seconds": delay,
                    "error_type": type(error).__name__,
                    "error": str(error)[:200],
                }
            )

        try:
            files = await retry(
                attempt,
                self.retry_policy,
                sleep=self.sleep,
                on_retry=on_retry,
                should_continue=lambda: not self._is_cancelled(cancel_event),
            )
        except Exception as e:
            report.error = f"{type(e).__name__}: {e}"
            logger.warning(
                "pipeline.chunk.failed",
                extra={
                    "chunk": chunk.name,
                    "attempts": report.attempts,
                    "error_type": type(e).__name__,
                    "error": str(e)[:200],
                }
            )
            self._emit(
                run,
                ProgressKind.LOG,
                f"Chunk {chunk.name} produced no files",
                fraction=self._chunk_fraction(report.index, chunk_count),
            )
            return {}

        report.succeeded = True
        report.file_count = len(files)

        for path, content in files.items():
            self._emit(
                run,
                ProgressKind.FILE_COMPLETE,
                f"Generated {path}",
                file=ProgressFile(path=path, content=content),
            )

        self._emit(
            run,
            ProgressKind.LOG,
            f"Finished {chunk.name}: {len(files)} file(s)",
            fraction=self._chunk_fraction(report.index, chunk_count),
        )

        logger.info(
            "pipeline.chunk.completed",
            extra={
                "chunk": chunk.name,
                "attempts": report.attempts,
                "file_count": len(files),
            }
        )
        return files

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _base_files(self, app_name: str, run: Optional[_Run] = None) -> RawFileSet:
        try:
            return dict(self.template_provider.generate(app_name))
        except Exception as e:
            logger.critical(
                "pipeline.template.failed",
                extra={"app_name": app_name},
                exc_info=e
            )
            if run is not None:
                run.enter(PipelineState.FAILED)
                self._emit(run, ProgressKind.ERROR, f"Base template unavailable: {e}")
            raise PipelineError(f"Base template could not be generated: {e}") from e

    def _fallback(
        self,
        base: RawFileSet,
        run: _Run,
        reports: List[ChunkReport],
        cancelled: bool,
        reason: str,
    ) -> PipelineResult:
        run.enter(PipelineState.FAILED)

        logger.warning(
            "pipeline.execution.fallback",
            extra={
                "reason": reason,
                "chunk_count": len(reports),
                "cancelled": cancelled,
                "file_count": len(base),
            }
        )
        self._emit(run, ProgressKind.ERROR, f"{reason}; returning the base template")

        return PipelineResult(
            files=dict(base),
            state=PipelineState.FAILED,
            state_history=list(run.state_history),
            chunk_reports=reports,
            cancelled=cancelled,
            used_fallback=True,
        )

    @staticmethod
    def _is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
        return cancel_event is not None and cancel_event.is_set()

    @staticmethod
    def _chunk_fraction(done: int, total: int) -> float:
        if total <= 0:
            return 0.8
        return round(0.1 + 0.7 * (done / total), 4)

    @staticmethod
    def _emit(
        run: _Run,
        kind: ProgressKind,
        message: str,
        file: Optional[ProgressFile] = None,
        fraction: Optional[float] = None,
    ) -> None:
        if run.on_progress is None:
            return

        event = ProgressEvent(kind=kind, message=message, file=file, progress_fraction=fraction)
        try:
            run.on_progress(event)
        except Exception as e:
            logger.debug(
                "pipeline.progress.callback_failed",
                extra={"kind": kind.value, "error": str(e)[:200]}
            )


# Global pipeline instance
default_pipeline = GenerationPipeline()


async def run_pipeline(
    prompt: Optional[str],
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> RawFileSet:
    return await default_pipeline.run_pipeline(prompt, on_progress, cancel_event)


def build_plan(prompt: Optional[str]) -> GenerationPlan:
    return default_pipeline.build_plan(prompt)


# Testing
if __name__ == "__main__":
    from builder.core.logger import setup_logging

    setup_logging()

    async def test_pipeline():
        """Run one request against the configured provider"""

        print("\n" + "=" * 70)
        print("GENERATION PIPELINE TEST")
        print("=" * 70)

        prompt = "Create a todo app with dark mode and notifications"
        plan = default_pipeline.build_plan(prompt)

        print(f"\nPrompt: {prompt}")
        print(f"App: {plan.app_name} ({plan.analysis.type.value}, {plan.analysis.complexity.value})")
        for chunk in plan.chunks:
            print(f"  - {chunk.name}: {len(chunk.target_files)} files, max_tokens={chunk.max_tokens}")

        def show(event: ProgressEvent) -> None:
            print(f"  [{event.kind.value}] {event.message}")

        result = await default_pipeline.execute(plan, on_progress=show)

        print(f"\nState: {result.state.value}")
        print(f"Files: {len(result.files)}")
        for path in sorted(result.files):
            print(f"  {path}")

    asyncio.run(test_pipeline())
