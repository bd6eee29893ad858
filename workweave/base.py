"""Node abstraction shared by every workflow construct."""

from __future__ import annotations

import abc
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .contracts import StepInput, StepOutput
from .errors import CancellationError, ExecutionError, UnsupportedNodeTypeError

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger(__name__)


class Node(BaseModel, abc.ABC):
    """Executable unit of a workflow composition tree.

    Implemented by ``Step``, ``Steps``, ``Loop``, ``Parallel``,
    ``Condition`` and ``Router``. Every node exposes a single
    ``execute(context, step_input)`` coroutine returning a ``StepOutput``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: Optional[str] = Field(default=None, description="Display name of the node")
    description: Optional[str] = None

    @abc.abstractmethod
    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        """Run the node and return its output."""


def coerce_node(item: Any, index: int, owner: Optional[str] = None) -> Node:
    """Return ``item`` as a node; bare callables become unnamed steps."""
    if isinstance(item, Node):
        return item
    if callable(item):
        from .step import Step

        return Step(executor=item, max_retries=0)
    where = f" in {owner!r}" if owner else ""
    raise UnsupportedNodeTypeError(
        f"unsupported step type at index {index}{where}: {type(item).__name__}"
    )


def coerce_nodes(items: Any, owner: Optional[str] = None) -> List[Node]:
    if items is None:
        return []
    if isinstance(items, Node) or callable(items):
        items = [items]
    if not isinstance(items, Iterable) or isinstance(items, (str, bytes, dict)):
        raise UnsupportedNodeTypeError(
            f"expected a list of steps for {owner!r}, got {type(items).__name__}"
        )
    return [coerce_node(item, i, owner) for i, item in enumerate(items)]


NameResolver = Callable[[StepOutput, int], str]
ErrorWrapper = Callable[[Exception, int], ExecutionError]


async def execute_node_list(
    context: "RunContext",
    nodes: List[Node],
    step_input: StepInput,
    *,
    resolve_name: NameResolver,
    wrap_error: ErrorWrapper,
) -> Optional[StepOutput]:
    """Run ``nodes`` in order on a private copy of ``step_input``.

    Each node's content becomes the next node's ``previous_step_content``
    and its output is recorded under ``resolve_name(output, index)``. The
    first failure is re-raised through ``wrap_error``; cancellation is
    re-raised unchanged.
    """
    branch_input = step_input.branch()
    last_output: Optional[StepOutput] = None

    for index, node in enumerate(nodes):
        context.raise_if_cancelled()
        if last_output is not None:
            branch_input.previous_step_content = last_output.content

        try:
            output = await node.execute(context, branch_input)
        except CancellationError:
            raise
        except Exception as exc:
            raise wrap_error(exc, index) from exc

        branch_input.record_output(resolve_name(output, index), output)
        last_output = output

    return last_output
