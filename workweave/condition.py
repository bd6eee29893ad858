"""Condition: binary branch selection over the current input."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from pydantic import Field, ValidationInfo, field_validator, model_validator

from .base import Node, coerce_nodes, execute_node_list
from .contracts import ExecutorType, StepInput, StepOutput, WorkflowEvent
from .errors import CancellationError, ConfigurationError, ExecutionError

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger(__name__)

ConditionFunc = Callable[[StepInput], Any]


class Condition(Node):
    """Evaluate ``predicate`` once and run ``then_steps`` or ``else_steps``.

    The predicate may be a plain function or a coroutine function. The
    selected branch runs sequentially and stops on the first error.
    """

    predicate: Optional[ConditionFunc] = None
    then_steps: List[Node] = Field(default_factory=list)
    else_steps: List[Node] = Field(default_factory=list)

    @field_validator("then_steps", "else_steps", mode="before")
    @classmethod
    def _coerce_steps(cls, value: Any, info: ValidationInfo) -> List[Node]:
        return coerce_nodes(value, info.data.get("name"))

    @model_validator(mode="after")
    def _require_predicate(self) -> "Condition":
        if self.predicate is None:
            raise ConfigurationError(f"condition '{self.name}' has no evaluation function")
        return self

    @property
    def label(self) -> str:
        return self.name or "condition"

    async def evaluate(self, step_input: StepInput) -> bool:
        return await _check(self.predicate, step_input)

    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        context.raise_if_cancelled()
        await context.emit(
            WorkflowEvent.CONDITION_EXECUTION_STARTED, {"condition_name": self.label}
        )

        try:
            condition_result = await self.evaluate(step_input)
        except CancellationError:
            raise
        except Exception as exc:
            raise ExecutionError(
                f"condition '{self.label}' evaluation failed: {exc}",
                node_name=self.label,
            ) from exc
        branch = "then" if condition_result else "else"
        selected = self.then_steps if condition_result else self.else_steps
        logger.debug(f"Condition '{self.label}' evaluated {condition_result}, running {branch}")

        metadata = {"condition_result": condition_result, "executed_branch": branch}
        if not selected:
            output = StepOutput(
                step_name=self.name,
                executor_type=ExecutorType.CONDITION.value,
                event=WorkflowEvent.CONDITION_EXECUTION_COMPLETED.value,
                metadata={**metadata, "message": f"no steps defined for {branch} branch"},
            )
        else:

            def resolve_name(output: StepOutput, index: int) -> str:
                if output.step_name:
                    return f"{output.step_name}_{branch}"
                return f"{self.label}_{branch}_step_{index}"

            def wrap_error(exc: Exception, index: int) -> ExecutionError:
                return ExecutionError(
                    f"condition '{self.label}' branch '{branch}' step {index} failed: {exc}",
                    node_name=self.label,
                    branch=branch,
                    index=index,
                )

            last_output = await execute_node_list(
                context,
                selected,
                step_input,
                resolve_name=resolve_name,
                wrap_error=wrap_error,
            )
            output = StepOutput(
                step_name=self.name,
                executor_type=ExecutorType.CONDITION.value,
                event=WorkflowEvent.CONDITION_EXECUTION_COMPLETED.value,
                content=last_output.content if last_output is not None else None,
                metadata={**metadata, "steps_executed": len(selected)},
            )

        await context.emit(
            WorkflowEvent.CONDITION_EXECUTION_COMPLETED,
            {"condition_name": self.label, **output.metadata},
        )
        return output


def if_true(fn: ConditionFunc) -> ConditionFunc:
    return fn


def if_content_equals(target: str) -> ConditionFunc:
    """True when the previous content is the string ``target``."""

    def predicate(step_input: StepInput) -> bool:
        content = step_input.previous_step_content
        return isinstance(content, str) and content == target

    return predicate


def if_content_contains(substring: str) -> ConditionFunc:
    """True when the previous content is a string containing ``substring``."""

    def predicate(step_input: StepInput) -> bool:
        content = step_input.previous_step_content
        return isinstance(content, str) and substring in content

    return predicate


def if_has_output(step_name: str) -> ConditionFunc:
    def predicate(step_input: StepInput) -> bool:
        return step_input.get_step_output(step_name) is not None

    return predicate


def if_metadata_exists(key: str) -> ConditionFunc:
    """True when ``key`` is present in the input's ``additional_data``."""

    def predicate(step_input: StepInput) -> bool:
        return key in (step_input.additional_data or {})

    return predicate


def if_metadata_equals(key: str, value: Any) -> ConditionFunc:
    def predicate(step_input: StepInput) -> bool:
        data = step_input.additional_data or {}
        return key in data and data[key] == value

    return predicate


async def _check(condition: ConditionFunc, step_input: StepInput) -> bool:
    result = condition(step_input)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


def if_and(*conditions: ConditionFunc) -> ConditionFunc:
    """True when every condition holds; stops at the first false one."""

    async def predicate(step_input: StepInput) -> bool:
        for condition in conditions:
            if not await _check(condition, step_input):
                return False
        return True

    return predicate


def if_or(*conditions: ConditionFunc) -> ConditionFunc:
    async def predicate(step_input: StepInput) -> bool:
        for condition in conditions:
            if await _check(condition, step_input):
                return True
        return False

    return predicate


def if_not(condition: ConditionFunc) -> ConditionFunc:
    async def predicate(step_input: StepInput) -> bool:
        return not await _check(condition, step_input)

    return predicate


def simple_if(
    predicate: ConditionFunc,
    then_step: Any = None,
    else_step: Any = None,
    name: Optional[str] = None,
) -> Condition:
    """Condition with at most one node per branch."""
    return Condition(
        name=name,
        predicate=predicate,
        then_steps=[then_step] if then_step is not None else [],
        else_steps=[else_step] if else_step is not None else [],
    )
