"""Exception hierarchy for workweave workflows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional

if TYPE_CHECKING:
    from .contracts import StepOutput


class WorkweaveError(Exception):
    """Base class for all workweave errors."""


class ConfigurationError(WorkweaveError):
    """A node or workflow was constructed with an invalid configuration."""


class UnsupportedNodeTypeError(WorkweaveError, TypeError):
    """A node list contains something that is neither a node nor a callable."""


class InputValidationError(WorkweaveError):
    """Workflow input does not match the configured input schema."""


class CancellationError(WorkweaveError):
    """The run context was cancelled before or while a node was executing."""

    def __init__(self, message: str = "run cancelled") -> None:
        super().__init__(message)


class ExecutionError(WorkweaveError):
    """A node failed while executing.

    The failing node is identified by ``node_name`` and optionally the
    ``branch``, ``iteration`` or ``index`` inside it. The underlying failure
    is available as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        node_name: Optional[str] = None,
        branch: Optional[str] = None,
        iteration: Optional[int] = None,
        index: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.node_name = node_name
        self.branch = branch
        self.iteration = iteration
        self.index = index


class StepExecutionError(ExecutionError):
    """A step exhausted its retries."""

    def __init__(self, message: str, *, node_name: Optional[str], attempts: int) -> None:
        super().__init__(message, node_name=node_name)
        self.attempts = attempts


class StepTimeoutError(ExecutionError):
    """A step's local deadline elapsed."""


class StepsExecutionError(ExecutionError):
    """Every node of a continue-on-error sequence failed."""

    def __init__(
        self,
        message: str,
        *,
        node_name: Optional[str],
        output: "StepOutput",
        errors: List[Exception],
    ) -> None:
        super().__init__(message, node_name=node_name)
        self.output = output
        self.errors = errors


class ParallelExecutionError(ExecutionError):
    """One or more parallel branches failed."""

    def __init__(
        self, message: str, *, node_name: Optional[str], errors: Dict[str, Exception]
    ) -> None:
        super().__init__(message, node_name=node_name)
        self.errors = errors


class TransportError(WorkweaveError):
    """An event could not be delivered to its transport."""
