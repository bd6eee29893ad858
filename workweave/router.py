"""Router: named-branch selection driven by a classifier."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from pydantic import Field, ValidationInfo, field_validator, model_validator

from .base import Node, coerce_nodes, execute_node_list
from .contracts import ExecutorType, StepInput, StepOutput, WorkflowEvent
from .errors import CancellationError, ConfigurationError, ExecutionError, UnsupportedNodeTypeError

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger(__name__)

RouterFunc = Callable[[StepInput], Any]

DEFAULT_ROUTE = "default"


class Router(Node):
    """Run the route named by ``route_func``.

    Lookup tries an exact match, then a case-folded match when
    ``case_sensitive`` is off, then a substring match in either direction
    when ``allow_partial_match`` is on. Unmatched names fall back to
    ``default_route``, or to a no-op output when no default is configured.
    """

    route_func: Optional[RouterFunc] = None
    routes: Dict[str, List[Node]] = Field(default_factory=dict)
    default_route: List[Node] = Field(default_factory=list)
    case_sensitive: bool = True
    allow_partial_match: bool = False

    @field_validator("routes", mode="before")
    @classmethod
    def _coerce_routes(cls, value: Any, info: ValidationInfo) -> Dict[str, List[Node]]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise UnsupportedNodeTypeError(
                f"routes of router {info.data.get('name')!r} must be a mapping, "
                f"got {type(value).__name__}"
            )
        return {
            str(route): coerce_nodes(steps, info.data.get("name"))
            for route, steps in value.items()
        }

    @field_validator("default_route", mode="before")
    @classmethod
    def _coerce_default(cls, value: Any, info: ValidationInfo) -> List[Node]:
        return coerce_nodes(value, info.data.get("name"))

    @model_validator(mode="after")
    def _require_route_func(self) -> "Router":
        if self.route_func is None:
            raise ConfigurationError(f"router '{self.name}' has no routing function")
        return self

    @property
    def label(self) -> str:
        return self.name or "router"

    def add_route(self, name: str, *steps: Any) -> "Router":
        self.routes[name] = coerce_nodes(list(steps), self.name)
        return self

    def find_route(self, route_name: str) -> Tuple[Optional[List[Node]], str]:
        if route_name in self.routes:
            return self.routes[route_name], route_name

        if not self.case_sensitive:
            folded = route_name.lower()
            for name, steps in self.routes.items():
                if name.lower() == folded:
                    return steps, name

        if self.allow_partial_match:
            wanted = route_name if self.case_sensitive else route_name.lower()
            for name, steps in self.routes.items():
                candidate = name if self.case_sensitive else name.lower()
                if candidate in wanted or wanted in candidate:
                    return steps, name

        return None, ""

    async def select_route(self, step_input: StepInput) -> str:
        result = self.route_func(step_input)
        if inspect.isawaitable(result):
            result = await result
        return str(result)

    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        context.raise_if_cancelled()
        await context.emit(WorkflowEvent.ROUTER_EXECUTION_STARTED, {"router_name": self.label})

        try:
            selected_route = await self.select_route(step_input)
        except CancellationError:
            raise
        except Exception as exc:
            raise ExecutionError(
                f"router '{self.label}' route selection failed: {exc}",
                node_name=self.label,
            ) from exc
        steps, route_name = self.find_route(selected_route)
        if steps is None and self.default_route:
            steps, route_name = self.default_route, DEFAULT_ROUTE

        if steps is None:
            logger.debug(f"Router '{self.label}' found no route for '{selected_route}'")
            output = StepOutput(
                step_name=self.name,
                executor_type=ExecutorType.ROUTER.value,
                event=WorkflowEvent.ROUTER_EXECUTION_COMPLETED.value,
                metadata={
                    "selected_route": selected_route,
                    "message": f"no route found for '{selected_route}' and no default route defined",
                },
            )
        else:
            logger.debug(f"Router '{self.label}' selected '{selected_route}', running '{route_name}'")

            def resolve_name(output: StepOutput, index: int) -> str:
                if output.step_name:
                    return f"{output.step_name}_{route_name}"
                return f"{self.label}_{route_name}_step_{index}"

            def wrap_error(exc: Exception, index: int) -> ExecutionError:
                return ExecutionError(
                    f"router '{self.label}' route '{route_name}' step {index} failed: {exc}",
                    node_name=self.label,
                    branch=route_name,
                    index=index,
                )

            last_output = await execute_node_list(
                context,
                steps,
                step_input,
                resolve_name=resolve_name,
                wrap_error=wrap_error,
            )
            output = StepOutput(
                step_name=self.name,
                executor_type=ExecutorType.ROUTER.value,
                event=WorkflowEvent.ROUTER_EXECUTION_COMPLETED.value,
                next_step=route_name,
                content=last_output.content if last_output is not None else None,
                metadata={
                    "selected_route": selected_route,
                    "executed_route": route_name,
                    "steps_executed": len(steps),
                },
            )

        await context.emit(
            WorkflowEvent.ROUTER_EXECUTION_COMPLETED,
            {"router_name": self.label, **output.metadata},
        )
        return output


def route_by_content() -> RouterFunc:
    """Classify the previous content as error, success, warning or default."""

    def classify(step_input: StepInput) -> str:
        content = step_input.previous_step_content
        if content is None:
            return "no_content"
        if not isinstance(content, str):
            return "non_string_content"
        lowered = content.lower()
        for marker in ("error", "success", "warning"):
            if marker in lowered:
                return marker
        return DEFAULT_ROUTE

    return classify


def route_by_metadata(key: str) -> RouterFunc:
    def classify(step_input: StepInput) -> str:
        if not step_input.additional_data:
            return "no_metadata"
        if key not in step_input.additional_data:
            return "key_not_found"
        return str(step_input.additional_data[key])

    return classify


def route_by_step_output(step_name: str, field: str) -> RouterFunc:
    """Route on a metadata field of a previously recorded step output."""

    def classify(step_input: StepInput) -> str:
        output = step_input.get_step_output(step_name)
        if output is None:
            return "step_not_found"
        if field in output.metadata:
            return str(output.metadata[field])
        return "field_not_found"

    return classify


def route_by_function(fn: RouterFunc) -> RouterFunc:
    return fn


def route_by_content_type() -> RouterFunc:
    def classify(step_input: StepInput) -> str:
        content = step_input.previous_step_content
        if content is None:
            return "nil"
        if isinstance(content, bool):
            return "boolean"
        if isinstance(content, str):
            return "string"
        if isinstance(content, (int, float)):
            return "number"
        if isinstance(content, dict):
            return "object"
        if isinstance(content, (list, tuple)):
            return "array"
        return "unknown"

    return classify


def route_by_message_type() -> RouterFunc:
    def classify(step_input: StepInput) -> str:
        message = step_input.message
        if message is None:
            return "no_message"
        if isinstance(message, str):
            return "text"
        if isinstance(message, dict):
            return "structured"
        if isinstance(message, (list, tuple)):
            return "list"
        return "unknown"

    return classify


def simple_router(
    route_func: RouterFunc, routes: Dict[str, Any], name: Optional[str] = None
) -> Router:
    return Router(name=name, route_func=route_func, routes=routes)


def switch_router(
    route_func: RouterFunc,
    routes: Dict[str, Any],
    *default_steps: Any,
    name: Optional[str] = None,
) -> Router:
    """Router whose unmatched routes run ``default_steps``."""
    return Router(
        name=name,
        route_func=route_func,
        routes=routes,
        default_route=list(default_steps),
    )
