"""Steps: ordered sequential composition of nodes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator

from .base import Node, coerce_node, coerce_nodes
from .contracts import ExecutorType, StepInput, StepOutput, WorkflowEvent
from .errors import CancellationError, ExecutionError, StepsExecutionError

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger(__name__)


class Steps(Node):
    """Run ``steps`` in order, threading each output into the next input.

    By default the first failure aborts the sequence. With
    ``continue_on_error`` failures are recorded in the output metadata and
    only a sequence where every node failed raises.
    """

    steps: List[Node] = Field(default_factory=list)
    continue_on_error: bool = False
    collect_outputs: bool = True

    @field_validator("steps", mode="before")
    @classmethod
    def _coerce_steps(cls, value: Any, info: ValidationInfo) -> List[Node]:
        return coerce_nodes(value, info.data.get("name"))

    @property
    def label(self) -> str:
        return self.name or "steps"

    def add(self, step: Any) -> "Steps":
        self.steps.append(coerce_node(step, len(self.steps), self.name))
        return self

    def __len__(self) -> int:
        return len(self.steps)

    def _resolve_name(self, output: StepOutput, index: int) -> str:
        return output.step_name or f"{self.label}_step_{index}"

    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        context.raise_if_cancelled()
        if not self.steps:
            return StepOutput(
                step_name=self.name,
                executor_type=ExecutorType.STEPS.value,
                event=WorkflowEvent.STEPS_EXECUTION_COMPLETED.value,
                metadata={"message": "no steps to execute"},
            )

        await context.emit(
            WorkflowEvent.STEPS_EXECUTION_STARTED,
            {"steps_name": self.label, "total_steps": len(self.steps)},
        )

        outputs: Dict[str, StepOutput] = {}
        errors: List[Exception] = []
        failed_at: List[int] = []
        branch_input = step_input.branch()
        last_output: Optional[StepOutput] = None

        for index, node in enumerate(self.steps):
            context.raise_if_cancelled()
            if last_output is not None:
                branch_input.previous_step_content = last_output.content

            try:
                output = await node.execute(context, branch_input)
            except CancellationError:
                raise
            except Exception as exc:
                if not self.continue_on_error:
                    raise ExecutionError(
                        f"steps '{self.label}' failed at step {index}: {exc}",
                        node_name=self.label,
                        index=index,
                    ) from exc
                logger.warning(f"Steps '{self.label}' step {index} failed, continuing: {exc}")
                errors.append(exc)
                failed_at.append(index)
                continue

            step_name = self._resolve_name(output, index)
            if self.collect_outputs:
                outputs.pop(step_name, None)
                outputs[step_name] = output
            branch_input.record_output(step_name, output)
            last_output = output

        success_count = len(self.steps) - len(errors)
        final_output = StepOutput(
            step_name=self.name,
            executor_type=ExecutorType.STEPS.value,
            event=WorkflowEvent.STEPS_EXECUTION_COMPLETED.value,
            metadata={
                "total_steps": len(self.steps),
                "success_count": success_count,
                "failure_count": len(errors),
            },
        )
        if errors:
            final_output.metadata["errors"] = [
                f"step {i} failed: {exc}" for i, exc in zip(failed_at, errors)
            ]

        if self.collect_outputs and outputs:
            contents = {
                name: output.content
                for name, output in outputs.items()
                if output.content is not None
            }
            if contents:
                final_output.content = contents
            final_output.parallel_step_outputs = dict(outputs)
        elif last_output is not None:
            final_output.content = last_output.content

        await context.emit(
            WorkflowEvent.STEPS_EXECUTION_COMPLETED,
            {"steps_name": self.label, **final_output.metadata},
        )

        if errors and success_count == 0:
            raise StepsExecutionError(
                f"all steps of '{self.label}' failed: {[str(e) for e in errors]}",
                node_name=self.label,
                output=final_output,
                errors=errors,
            )
        return final_output


def sequential(*steps: Any, name: Optional[str] = None) -> Steps:
    """Sequence that collects every output."""
    return Steps(name=name, steps=list(steps), collect_outputs=True)


def pipeline(name: str, *steps: Any) -> Steps:
    """Fail-fast sequence that keeps only the last output's content."""
    return Steps(name=name, steps=list(steps), collect_outputs=False, continue_on_error=False)


def try_all(*steps: Any, name: Optional[str] = None) -> Steps:
    """Run every step, recording failures instead of stopping."""
    return Steps(name=name, steps=list(steps), continue_on_error=True, collect_outputs=True)
