"""
ScriptFlow Base Pipeline

Abstract base class for step-based processing pipelines.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, Protocol, TypeVar

from scriptflow.core.cancellation import CancellationToken, is_cancellation_error
from scriptflow.core.exceptions import PipelineStageError, StageCancelledError
from scriptflow.core.logging_config import get_logger

logger = get_logger("pipelines.base")

InputT = TypeVar('InputT')
OutputT = TypeVar('OutputT')


class PipelineStatus(Enum):
    """Status of a pipeline execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class PipelineResult(Generic[OutputT]):
    """Result from a pipeline execution."""
    status: PipelineStatus
    output: Optional[OutputT] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == PipelineStatus.COMPLETED

    @property
    def cancelled(self) -> bool:
        return self.status == PipelineStatus.CANCELLED


@dataclass
class PipelineStep:
    """A step in a pipeline."""
    name: str
    description: str
    required: bool = True


@dataclass
class ProgressEvent:
    """Progress notification emitted by a pipeline."""
    pipeline: str
    step: str
    current: int
    total: int
    message: str = ""

    @property
    def percent(self) -> float:
        return self.current / self.total * 100 if self.total else 0.0


class ProgressObserver(Protocol):
    def on_progress(self, event: ProgressEvent) -> None:
        ...


class NullProgressObserver:
    """Observer that ignores every event."""

    def on_progress(self, event: ProgressEvent) -> None:
        pass


class BasePipeline(ABC, Generic[InputT, OutputT]):
    """
    Abstract base class for processing pipelines.

    Features:
    - Step-based execution with an overridable start step
    - Progress reporting through an explicit observer
    - Hooks after each completed step
    - Failures and cancellations classified per step
    """

    def __init__(self, name: str, observer: Optional[ProgressObserver] = None):
        """
        Initialize the pipeline.

        Args:
            name: Pipeline name
            observer: Receives progress events (no-op by default)
        """
        self.name = name
        self.observer: ProgressObserver = observer or NullProgressObserver()
        self._steps: List[PipelineStep] = []

        self._define_steps()

    @abstractmethod
    def _define_steps(self) -> None:
        """Define the pipeline steps. Override in subclasses."""
        pass

    @abstractmethod
    async def _execute_step(
        self,
        step: PipelineStep,
        input_data: Any,
        context: Dict[str, Any],
        token: Optional[CancellationToken]
    ) -> Any:
        """Execute a single step. Override in subclasses."""
        pass

    def _resolve_start_index(self, input_data: Any, context: Dict[str, Any]) -> int:
        """Index of the first step to run."""
        return 0

    async def _on_step_completed(
        self,
        step: PipelineStep,
        index: int,
        data: Any,
        context: Dict[str, Any]
    ) -> None:
        """Called after each successful step, before the next one starts."""
        pass

    async def _finalize(self, data: Any, context: Dict[str, Any]) -> Any:
        """Turn the last step's data into the pipeline output."""
        return data

    def _describe_failure(self, error: PipelineStageError) -> str:
        return str(error)

    def _describe_cancellation(self, error: StageCancelledError) -> str:
        return str(error)

    async def run(
        self,
        input_data: InputT,
        context: Dict[str, Any] = None,
        token: Optional[CancellationToken] = None
    ) -> PipelineResult[OutputT]:
        """
        Run the pipeline.

        Args:
            input_data: Input data
            context: Additional context
            token: Cancellation signal observed before and during each step

        Returns:
            PipelineResult with output
        """
        context = context if context is not None else {}
        start_time = datetime.now()

        start_index = self._resolve_start_index(input_data, context)
        # per run, so concurrent runs on one instance report their own step
        index = start_index

        logger.info(f"Starting pipeline: {self.name}")

        try:
            current_data = input_data
            total = len(self._steps)

            for index in range(start_index, total):
                step = self._steps[index]
                if token is not None:
                    token.raise_if_cancelled(step.name)

                self._report_progress(step, index, total)
                logger.debug(f"Executing step: {step.name}")

                try:
                    current_data = await self._execute_step(step, current_data, context, token)
                except StageCancelledError:
                    raise
                except Exception as e:
                    if is_cancellation_error(e, token):
                        raise StageCancelledError(step.name, str(e)) from e
                    if step.required:
                        raise PipelineStageError(step.name, str(e)) from e
                    logger.warning(f"Optional step failed: {step.name} - {e}")
                    continue

                await self._on_step_completed(step, index, current_data, context)

            output = await self._finalize(current_data, context)

            return PipelineResult(
                status=PipelineStatus.COMPLETED,
                output=output,
                duration_seconds=self._get_duration(start_time),
                metadata={'steps_completed': total - start_index}
            )

        except StageCancelledError as e:
            logger.warning(f"Pipeline cancelled: {self.name} - {e}")

            return PipelineResult(
                status=PipelineStatus.CANCELLED,
                error=self._describe_cancellation(e),
                duration_seconds=self._get_duration(start_time),
                metadata={'cancelled_step': e.stage_name or self._step_name(index)}
            )

        except PipelineStageError as e:
            logger.error(f"Pipeline failed: {self.name} - {e}")

            return PipelineResult(
                status=PipelineStatus.FAILED,
                error=self._describe_failure(e),
                duration_seconds=self._get_duration(start_time),
                metadata={'failed_step': e.stage_name}
            )

        except Exception as e:
            step_name = self._step_name(index)
            logger.error(f"Pipeline failed: {self.name} - {e}")

            return PipelineResult(
                status=PipelineStatus.FAILED,
                error=self._describe_failure(PipelineStageError(step_name, str(e))),
                duration_seconds=self._get_duration(start_time),
                metadata={'failed_step': step_name}
            )

    def _report_progress(self, step: PipelineStep, current: int, total: int, message: str = "") -> None:
        """Report progress to the observer."""
        self.observer.on_progress(ProgressEvent(
            pipeline=self.name,
            step=step.name,
            current=current + 1,
            total=total,
            message=message or step.description,
        ))

    def _step_name(self, index: int) -> str:
        return self._steps[index].name if 0 <= index < len(self._steps) else ""

    def _get_duration(self, start_time: datetime) -> float:
        """Get duration since start time."""
        return (datetime.now() - start_time).total_seconds()

    @property
    def steps(self) -> List[PipelineStep]:
        return self._steps.copy()
