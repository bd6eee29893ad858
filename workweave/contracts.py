"""Core data contracts threaded through every workflow node."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExecutorType(str, Enum):
    """Tag identifying the kind of node that produced an output."""

    AGENT = "agent"
    TEAM = "team"
    FUNCTION = "function"
    STEPS = "steps"
    LOOP = "loop"
    PARALLEL = "parallel"
    CONDITION = "condition"
    ROUTER = "router"


class WorkflowEvent(str, Enum):
    """Event kinds emitted during a workflow run."""

    WORKFLOW_STARTED = "WorkflowStarted"
    WORKFLOW_COMPLETED = "WorkflowCompleted"
    STEP_STARTED = "StepStarted"
    STEP_COMPLETED = "StepCompleted"
    STEP_OUTPUT = "StepOutput"
    STEP_SKIPPED = "StepSkipped"
    STEPS_EXECUTION_STARTED = "StepsExecutionStarted"
    STEPS_EXECUTION_COMPLETED = "StepsExecutionCompleted"
    LOOP_EXECUTION_STARTED = "LoopExecutionStarted"
    LOOP_EXECUTION_COMPLETED = "LoopExecutionCompleted"
    LOOP_ITERATION_STARTED = "LoopIterationStarted"
    LOOP_ITERATION_COMPLETED = "LoopIterationCompleted"
    PARALLEL_EXECUTION_STARTED = "ParallelExecutionStarted"
    PARALLEL_EXECUTION_COMPLETED = "ParallelExecutionCompleted"
    CONDITION_EXECUTION_STARTED = "ConditionExecutionStarted"
    CONDITION_EXECUTION_COMPLETED = "ConditionExecutionCompleted"
    ROUTER_EXECUTION_STARTED = "RouterExecutionStarted"
    ROUTER_EXECUTION_COMPLETED = "RouterExecutionCompleted"


class RunStatus(str, Enum):
    """Lifecycle state of a single workflow run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ImageArtifact(BaseModel):
    url: Optional[str] = None
    path: Optional[str] = None
    base64: Optional[str] = None
    content_type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VideoArtifact(BaseModel):
    url: Optional[str] = None
    path: Optional[str] = None
    content_type: Optional[str] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AudioArtifact(BaseModel):
    url: Optional[str] = None
    path: Optional[str] = None
    content_type: Optional[str] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


def message_as_string(message: Any) -> str:
    """Render an arbitrary workflow message as text."""
    if message is None:
        return ""
    if isinstance(message, str):
        return message
    if isinstance(message, BaseModel):
        return message.model_dump_json(indent=2)
    if isinstance(message, (dict, list)):
        return json.dumps(message, indent=2, default=str)
    return str(message)


class StepMetrics(BaseModel):
    """Timing and outcome of a single node execution."""

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_ms: int = 0
    tokens_used: int = 0
    cost: float = 0.0
    success: bool = False
    error: Optional[str] = None
    retry_count: int = 0
    skipped: bool = False
    custom_metrics: Dict[str, Any] = Field(default_factory=dict)

    def finish(self, success: bool, error: Optional[str] = None) -> "StepMetrics":
        """Stamp the end time and outcome."""
        self.end_time = _utcnow()
        if self.start_time is not None:
            delta = self.end_time - self.start_time
            self.duration_ms = int(delta.total_seconds() * 1000)
        self.success = success
        self.error = error
        return self


class WorkflowMetrics(BaseModel):
    """Run-level metrics aggregated by the workflow driver."""

    workflow_id: Optional[str] = None
    run_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration_ms: int = 0
    steps_executed: int = 0
    steps_succeeded: int = 0
    steps_failed: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    success: bool = False
    error: Optional[str] = None
    step_metrics: Dict[str, StepMetrics] = Field(default_factory=dict)
    custom_metrics: Dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class StepOutput(BaseModel):
    """Result of any node.

    ``content`` is the primary payload of function, agent, team, condition
    and router nodes; ``parallel_step_outputs`` of parallel nodes and
    collecting sequences; ``loop_step_outputs`` of loops.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    content: Any = None
    step_name: Optional[str] = None
    executor_name: Optional[str] = None
    executor_type: Optional[str] = None
    event: Optional[str] = None
    next_step: Optional[str] = None
    parallel_step_outputs: Optional[Dict[str, "StepOutput"]] = None
    loop_step_outputs: Optional[List["StepOutput"]] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    images: List[ImageArtifact] = Field(default_factory=list)
    videos: List[VideoArtifact] = Field(default_factory=list)
    audio: List[AudioArtifact] = Field(default_factory=list)
    metrics: Optional[StepMetrics] = None

    @property
    def skipped(self) -> bool:
        return self.event == WorkflowEvent.STEP_SKIPPED.value

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class WorkflowExecutionInput(BaseModel):
    """Canonical shape of a workflow's input after normalisation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    message: Any = None
    additional_data: Dict[str, Any] = Field(default_factory=dict)
    images: List[ImageArtifact] = Field(default_factory=list)
    videos: List[VideoArtifact] = Field(default_factory=list)
    audio: List[AudioArtifact] = Field(default_factory=list)

    def get_message_as_string(self) -> str:
        return message_as_string(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class StepInput(BaseModel):
    """Execution context passed into every node invocation.

    ``previous_step_outputs`` keeps insertion order equal to recency: a
    name recorded again moves to the end, so the last entry is always the
    most recent output.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    message: Any = None
    previous_step_content: Any = None
    previous_step_outputs: Dict[str, StepOutput] = Field(default_factory=dict)
    additional_data: Dict[str, Any] = Field(default_factory=dict)
    images: List[ImageArtifact] = Field(default_factory=list)
    videos: List[VideoArtifact] = Field(default_factory=list)
    audio: List[AudioArtifact] = Field(default_factory=list)

    @classmethod
    def from_execution_input(cls, execution_input: WorkflowExecutionInput) -> "StepInput":
        return cls(
            message=execution_input.message,
            additional_data=execution_input.additional_data,
            images=execution_input.images,
            videos=execution_input.videos,
            audio=execution_input.audio,
        )

    def get_message_as_string(self) -> str:
        return message_as_string(self.message)

    def get_step_output(self, step_name: str) -> Optional[StepOutput]:
        return self.previous_step_outputs.get(step_name)

    def get_step_content(self, step_name: str) -> Any:
        """Return the content of a previous step.

        Outputs with parallel sub-outputs yield a name to content map.
        """
        output = self.get_step_output(step_name)
        if output is None:
            return None
        if output.parallel_step_outputs:
            return {
                name: sub.content
                for name, sub in output.parallel_step_outputs.items()
                if sub.content is not None
            }
        return output.content

    def get_all_previous_content(self) -> str:
        parts = [
            f"=== {name} ===\n{output.content}"
            for name, output in self.previous_step_outputs.items()
            if output.content is not None
        ]
        return "\n\n".join(parts)

    def get_last_step_content(self) -> Any:
        if not self.previous_step_outputs:
            return None
        last = next(reversed(self.previous_step_outputs.values()))
        return last.content

    def record_output(self, step_name: str, output: StepOutput) -> None:
        self.previous_step_outputs.pop(step_name, None)
        self.previous_step_outputs[step_name] = output

    def branch(self, **updates: Any) -> "StepInput":
        """Copy this input with independent outputs, data and artifact containers."""
        values = {
            "message": self.message,
            "previous_step_content": self.previous_step_content,
            "previous_step_outputs": dict(self.previous_step_outputs),
            "additional_data": dict(self.additional_data),
            "images": list(self.images),
            "videos": list(self.videos),
            "audio": list(self.audio),
        }
        values.update(updates)
        return StepInput.model_construct(**values)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class WorkflowRunEvent(BaseModel):
    """Typed event envelope handed to handlers and transports."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event: WorkflowEvent
    data: Any = None
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(), default=str)


class WorkflowRunResponse(BaseModel):
    """Stable result surface of one workflow run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str
    workflow_id: str
    status: RunStatus
    content: Any = None
    event: Optional[WorkflowEvent] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    metrics: Optional[WorkflowMetrics] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
