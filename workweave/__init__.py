"""Workweave: composable async workflows for functions and AI agents."""

from .condition import Condition
from .context import RunContext
from .contracts import (
    RunStatus,
    StepInput,
    StepMetrics,
    StepOutput,
    WorkflowEvent,
    WorkflowExecutionInput,
    WorkflowMetrics,
    WorkflowRunEvent,
    WorkflowRunResponse,
)
from .errors import (
    CancellationError,
    ConfigurationError,
    ExecutionError,
    InputValidationError,
    ParallelExecutionError,
    StepExecutionError,
    StepsExecutionError,
    StepTimeoutError,
    UnsupportedNodeTypeError,
    WorkweaveError,
)
from .loop import Loop
from .parallel import Parallel
from .persistence import get_storage
from .router import Router
from .step import Step
from .steps import Steps
from .transports import get_transport
from .workflow import Workflow

__version__ = "0.1.0"
__all__ = [
    "CancellationError",
    "Condition",
    "ConfigurationError",
    "ExecutionError",
    "InputValidationError",
    "Loop",
    "Parallel",
    "ParallelExecutionError",
    "Router",
    "RunContext",
    "RunStatus",
    "Step",
    "StepExecutionError",
    "StepInput",
    "StepMetrics",
    "StepOutput",
    "Steps",
    "StepsExecutionError",
    "StepTimeoutError",
    "UnsupportedNodeTypeError",
    "Workflow",
    "WorkflowEvent",
    "WorkflowExecutionInput",
    "WorkflowMetrics",
    "WorkflowRunEvent",
    "WorkflowRunResponse",
    "WorkweaveError",
    "get_storage",
    "get_transport",
]
