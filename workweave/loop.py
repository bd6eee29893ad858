"""Loop: bounded repetition of a node list."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator

from .base import Node, coerce_nodes, execute_node_list
from .contracts import ExecutorType, StepInput, StepOutput, WorkflowEvent
from .errors import ConfigurationError, ExecutionError

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger(__name__)

LoopCondition = Callable[[int, Optional[StepOutput]], bool]


class Loop(Node):
    """Repeat ``steps`` while ``condition(iteration, last_output)`` holds.

    ``max_iterations`` is a hard ceiling that wins over the condition.
    Each iteration starts from the previous iteration's content and the
    outer outputs; a failing iteration is skipped unless ``break_on_error``.
    """

    steps: List[Node] = Field(default_factory=list)
    max_iterations: int = 10
    condition: Optional[LoopCondition] = None
    break_on_error: bool = False
    collect_outputs: bool = True

    @field_validator("steps", mode="before")
    @classmethod
    def _coerce_steps(cls, value: Any, info: ValidationInfo) -> List[Node]:
        return coerce_nodes(value, info.data.get("name"))

    @model_validator(mode="after")
    def _check_limits(self) -> "Loop":
        if self.max_iterations < 1:
            raise ConfigurationError(f"loop '{self.name}': max_iterations must be >= 1")
        return self

    @property
    def label(self) -> str:
        return self.name or "loop"

    def should_continue(self, iteration: int, last_output: Optional[StepOutput]) -> bool:
        if iteration >= self.max_iterations:
            return False
        if self.condition is None:
            return True
        return bool(self.condition(iteration, last_output))

    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        context.raise_if_cancelled()
        await context.emit(
            WorkflowEvent.LOOP_EXECUTION_STARTED,
            {"loop_name": self.label, "max_iterations": self.max_iterations},
        )

        outer_input = step_input.branch()
        outputs: List[StepOutput] = []
        last_output: Optional[StepOutput] = None
        failed_iterations = 0
        iteration = 0
        started = time.monotonic()

        while self.should_continue(iteration, last_output):
            context.raise_if_cancelled()
            if last_output is not None:
                outer_input.previous_step_content = last_output.content

            await context.emit(
                WorkflowEvent.LOOP_ITERATION_STARTED,
                {"loop_name": self.label, "iteration": iteration},
            )
            try:
                iteration_output = await self._execute_iteration(
                    context, outer_input, iteration
                )
            except ExecutionError as exc:
                if self.break_on_error:
                    raise
                failed_iterations += 1
                logger.warning(f"Loop '{self.label}' iteration {iteration} failed: {exc}")
                iteration += 1
                continue

            if iteration_output is not None:
                if self.collect_outputs:
                    outputs.append(iteration_output)
                outer_input.record_output(
                    f"{self.label}_iteration_{iteration}", iteration_output
                )
                last_output = iteration_output

            await context.emit(
                WorkflowEvent.LOOP_ITERATION_COMPLETED,
                {"loop_name": self.label, "iteration": iteration},
            )
            logger.debug(f"Loop '{self.label}' completed iteration {iteration}")
            iteration += 1

        output = StepOutput(
            step_name=self.name,
            executor_type=ExecutorType.LOOP.value,
            event=WorkflowEvent.LOOP_EXECUTION_COMPLETED.value,
            metadata={
                "iterations": iteration,
                "duration_ms": int((time.monotonic() - started) * 1000),
                "failed_iterations": failed_iterations,
            },
        )
        if self.collect_outputs:
            output.loop_step_outputs = outputs
            if outputs:
                output.content = outputs[-1].content
        elif last_output is not None:
            output.content = last_output.content

        await context.emit(
            WorkflowEvent.LOOP_EXECUTION_COMPLETED,
            {"loop_name": self.label, **output.metadata},
        )
        return output

    async def _execute_iteration(
        self, context: "RunContext", loop_input: StepInput, iteration: int
    ) -> Optional[StepOutput]:
        def resolve_name(output: StepOutput, index: int) -> str:
            if output.step_name:
                return f"{output.step_name}_iteration_{iteration}"
            return f"{self.label}_iteration_{iteration}_step_{index}"

        def wrap_error(exc: Exception, index: int) -> ExecutionError:
            return ExecutionError(
                f"loop '{self.label}' failed at iteration {iteration}, step {index}: {exc}",
                node_name=self.label,
                iteration=iteration,
                index=index,
            )

        return await execute_node_list(
            context,
            self.steps,
            loop_input,
            resolve_name=resolve_name,
            wrap_error=wrap_error,
        )


def for_n(n: int) -> LoopCondition:
    """Run exactly ``n`` iterations (subject to ``max_iterations``)."""

    def condition(iteration: int, last_output: Optional[StepOutput]) -> bool:
        return iteration < n

    return condition


def while_true(fn: LoopCondition) -> LoopCondition:
    return fn


def until_content(target: str) -> LoopCondition:
    """Continue until the last output's string content equals ``target``."""

    def condition(iteration: int, last_output: Optional[StepOutput]) -> bool:
        if last_output is None or not isinstance(last_output.content, str):
            return True
        return last_output.content != target

    return condition


def while_error() -> LoopCondition:
    """Continue while the last output carries an ``error`` metadata key."""

    def condition(iteration: int, last_output: Optional[StepOutput]) -> bool:
        if last_output is None or not last_output.metadata:
            return True
        return "error" in last_output.metadata

    return condition


def until_success() -> LoopCondition:
    """Continue until the last output's ``success`` metadata is ``True``."""

    def condition(iteration: int, last_output: Optional[StepOutput]) -> bool:
        if last_output is None:
            return True
        return last_output.metadata.get("success") is not True

    return condition
