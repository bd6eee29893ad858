"""Parallel: concurrent fan-out over a fixed node list."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator

from .base import Node, coerce_nodes
from .contracts import ExecutorType, StepInput, StepOutput, WorkflowEvent
from .errors import CancellationError, ConfigurationError, ParallelExecutionError

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger(__name__)


class Parallel(Node):
    """Run every node concurrently on an independent copy of the input.

    A failing branch never aborts its siblings. Outputs are keyed by the
    branch's declared name or a stable positional name, so lookups do not
    depend on completion order.
    """

    steps: List[Node] = Field(default_factory=list)
    max_concurrency: Optional[int] = None
    combine_outputs: bool = True
    continue_on_error: bool = False

    @field_validator("steps", mode="before")
    @classmethod
    def _coerce_steps(cls, value: Any, info: ValidationInfo) -> List[Node]:
        return coerce_nodes(value, info.data.get("name"))

    @model_validator(mode="after")
    def _check_limits(self) -> "Parallel":
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ConfigurationError(
                f"parallel '{self.name}': max_concurrency must be >= 1 or None"
            )
        return self

    @property
    def label(self) -> str:
        return self.name or "parallel"

    def branch_name(self, node: Node, index: int) -> str:
        if node.name:
            return node.name
        if getattr(node, "executor_type", None) == ExecutorType.FUNCTION.value:
            return f"{self.label}_func_{index}"
        return f"{self.label}_step_{index}"

    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        context.raise_if_cancelled()
        if not self.steps:
            return StepOutput(
                step_name=self.name,
                executor_type=ExecutorType.PARALLEL.value,
                event=WorkflowEvent.PARALLEL_EXECUTION_COMPLETED.value,
                metadata={"message": "no steps to execute"},
            )

        names = [self.branch_name(node, i) for i, node in enumerate(self.steps)]
        await context.emit(
            WorkflowEvent.PARALLEL_EXECUTION_STARTED,
            {"parallel_name": self.label, "total_steps": len(self.steps)},
        )

        semaphore = (
            asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        )

        async def run_branch(node: Node) -> StepOutput:
            if semaphore is None:
                context.raise_if_cancelled()
                return await node.execute(context, step_input.branch())
            async with semaphore:
                context.raise_if_cancelled()
                return await node.execute(context, step_input.branch())

        started = time.monotonic()
        tasks = [asyncio.ensure_future(run_branch(node)) for node in self.steps]
        try:
            results = await context.guard(asyncio.gather(*tasks, return_exceptions=True))
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        outputs: Dict[str, StepOutput] = {}
        errors: Dict[str, Exception] = {}
        for name, result in zip(names, results):
            if isinstance(result, CancellationError):
                raise result
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception):
                logger.warning(f"Parallel '{self.label}' branch '{name}' failed: {result}")
                errors[name] = result
                continue
            if not result.step_name:
                result = result.model_copy(update={"step_name": name})
            outputs[name] = result

        if errors and not self.continue_on_error:
            first_name, first_error = next(iter(errors.items()))
            raise ParallelExecutionError(
                f"parallel '{self.label}' failed with {len(errors)} errors: "
                f"branch '{first_name}': {first_error}",
                node_name=self.label,
                errors=errors,
            ) from first_error

        output = StepOutput(
            step_name=self.name,
            executor_type=ExecutorType.PARALLEL.value,
            event=WorkflowEvent.PARALLEL_EXECUTION_COMPLETED.value,
            parallel_step_outputs=outputs,
            metadata={
                "duration_ms": int((time.monotonic() - started) * 1000),
                "total_steps": len(self.steps),
                "success_count": len(outputs),
                "failure_count": len(errors),
                "max_concurrency": self.max_concurrency,
            },
        )
        if errors:
            output.metadata["errors"] = {name: str(exc) for name, exc in errors.items()}
        if self.combine_outputs:
            contents = {
                name: branch.content
                for name, branch in outputs.items()
                if branch.content is not None
            }
            if contents:
                output.content = contents

        await context.emit(
            WorkflowEvent.PARALLEL_EXECUTION_COMPLETED,
            {"parallel_name": self.label, **output.metadata},
        )
        return output


def parallel_group(name: str, *steps: Any, max_concurrency: Optional[int] = None) -> Parallel:
    """Parallel node combining every branch's content."""
    return Parallel(
        name=name, steps=list(steps), max_concurrency=max_concurrency, combine_outputs=True
    )
