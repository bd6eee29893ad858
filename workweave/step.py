"""Step: a single executor wrapped with retry, timeout and skip policy."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Optional

from pydantic import Field, PrivateAttr, model_validator

from .agent import wrap_agent
from .base import Node
from .contracts import StepInput, StepMetrics, StepOutput, WorkflowEvent
from .errors import (
    CancellationError,
    ConfigurationError,
    InputValidationError,
    StepExecutionError,
    StepTimeoutError,
)
from .executors import AgentExecutor, BaseExecutor, FunctionExecutor, TeamExecutor
from .utils.retry import schedule_retry

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger(__name__)


class Step(Node):
    """Wrap exactly one of a function, an agent or a team.

    Failed attempts are retried up to ``max_retries`` times with a linear
    backoff of ``attempt * retry_delay`` seconds. ``timeout_seconds``
    bounds the whole step, retries included, without cancelling the run.
    """

    step_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    executor: Optional[Callable[..., Any]] = None
    agent: Optional[Any] = None
    team: Optional[Any] = None
    max_retries: int = 3
    retry_delay: float = 1.0
    timeout_seconds: Optional[float] = None
    skip_on_failure: bool = False
    strict_input_validation: bool = False

    _active: BaseExecutor = PrivateAttr()

    @model_validator(mode="after")
    def _select_executor(self) -> "Step":
        provided = [
            label
            for label, value in (
                ("agent", self.agent),
                ("team", self.team),
                ("executor", self.executor),
            )
            if value is not None
        ]
        if not provided:
            raise ConfigurationError(
                f"step '{self.name}' must have one executor: agent, team, or executor"
            )
        if len(provided) > 1:
            raise ConfigurationError(
                f"step '{self.name}' can only have one executor type, got {provided}"
            )
        if self.max_retries < 0:
            raise ConfigurationError(f"step '{self.name}': max_retries must be >= 0")
        if self.retry_delay < 0:
            raise ConfigurationError(f"step '{self.name}': retry_delay must be >= 0")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ConfigurationError(f"step '{self.name}': timeout_seconds must be positive")

        if self.agent is not None:
            self.agent = wrap_agent(self.agent)
            self._active = AgentExecutor(self.agent)
        elif self.team is not None:
            self.team = wrap_agent(self.team)
            self._active = TeamExecutor(self.team)
        else:
            self._active = FunctionExecutor(self.executor, name=self.name)
        return self

    @property
    def executor_name(self) -> str:
        return self._active.name

    @property
    def executor_type(self) -> str:
        return self._active.executor_type.value

    @property
    def display_name(self) -> str:
        return self.name or self.executor_name

    @property
    def supports_streaming(self) -> bool:
        return self._active.supports_streaming

    def stream(self, step_input: StepInput) -> AsyncIterator[str]:
        """Return the wrapped agent's chunk stream for ``step_input``."""
        if not isinstance(self._active, AgentExecutor) or not self.supports_streaming:
            raise TypeError(f"step '{self.display_name}' does not support streaming")
        return self._active.stream(step_input)

    def validate_input(self, step_input: Optional[StepInput]) -> None:
        if step_input is None:
            raise InputValidationError(f"step '{self.display_name}': input is missing")

    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        if self.strict_input_validation:
            self.validate_input(step_input)

        run_context = context
        if self.timeout_seconds is not None:
            run_context = context.with_timeout(self.timeout_seconds)

        metrics = StepMetrics(start_time=datetime.now(timezone.utc))
        last_error: Optional[Exception] = None
        attempts = 0

        for attempt in range(self.max_retries + 1):
            context.raise_if_cancelled()
            if run_context.deadline_exceeded:
                break
            if attempt > 0:
                logger.warning(
                    f"Retrying step '{self.display_name}' (attempt {attempt}/{self.max_retries})"
                )

            attempts += 1
            try:
                output = await self._attempt(run_context, step_input)
            except CancellationError:
                raise
            except Exception as exc:
                last_error = exc
                logger.debug(f"Step '{self.display_name}' attempt {attempts} failed: {exc}")
                if isinstance(exc, StepTimeoutError) or run_context.deadline_exceeded:
                    break
                if attempt < self.max_retries:
                    await schedule_retry(run_context, attempt + 1, self.retry_delay)
                continue

            metrics.retry_count = attempt
            return self._enrich(output, metrics)

        if last_error is None:
            last_error = StepTimeoutError(
                f"step '{self.display_name}' timed out after {self.timeout_seconds}s",
                node_name=self.display_name,
            )
        metrics.retry_count = max(0, attempts - 1)
        return self._handle_failure(last_error, attempts, metrics)

    async def _attempt(self, run_context: "RunContext", step_input: StepInput) -> StepOutput:
        pending = run_context.guard(self._active.execute(run_context, step_input))
        remaining = run_context.remaining()
        if remaining is None:
            return await pending
        try:
            return await asyncio.wait_for(pending, remaining)
        except asyncio.TimeoutError:
            raise StepTimeoutError(
                f"step '{self.display_name}' timed out after {self.timeout_seconds}s",
                node_name=self.display_name,
            ) from None

    def _enrich(self, output: StepOutput, metrics: StepMetrics) -> StepOutput:
        output = output.model_copy()
        if not output.step_name:
            output.step_name = self.name
        if not output.executor_name:
            output.executor_name = self.executor_name
        if not output.executor_type:
            output.executor_type = self.executor_type
        if output.metrics is None:
            output.metrics = metrics.finish(True)
        return output

    def _handle_failure(
        self, error: Exception, attempts: int, metrics: StepMetrics
    ) -> StepOutput:
        if self.skip_on_failure:
            logger.warning(
                f"Skipping step '{self.display_name}' after {attempts} attempts: {error}"
            )
            metrics.skipped = True
            return StepOutput(
                step_name=self.name,
                executor_name=self.executor_name,
                executor_type=self.executor_type,
                event=WorkflowEvent.STEP_SKIPPED.value,
                metadata={"error": str(error), "reason": "skip_on_failure"},
                metrics=metrics.finish(False, str(error)),
            )

        raise StepExecutionError(
            f"step '{self.display_name}' failed after {attempts} attempts: {error}",
            node_name=self.display_name,
            attempts=attempts,
        ) from error
