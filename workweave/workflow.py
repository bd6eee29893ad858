"""Top-level workflow driver."""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ValidationError

from .base import Node, coerce_nodes
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
    UnsupportedNodeTypeError,
)
from .persistence import SessionStorage, WorkflowSession
from .step import Step
from .store import StepOutputStore
from .transports import BaseEventTransport

logger = logging.getLogger(__name__)

EventHandler = Callable[[WorkflowRunEvent], Any]

FUNCTION_WORKFLOW = "function_workflow"

_STREAM_END = object()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workflow:
    """Run a list of nodes as one workflow.

    ``steps`` may be a list of nodes and/or plain callables, a single node,
    or a single callable (recorded as ``function_workflow``). Every run gets
    a fresh run id, output store and metrics; the previous run's results
    stay readable until the next run starts.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        steps: Any = None,
        *,
        workflow_id: Optional[str] = None,
        description: Optional[str] = None,
        storage: Optional[SessionStorage] = None,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        session_state: Optional[Dict[str, Any]] = None,
        input_schema: Optional[type] = None,
        transport: Optional[BaseEventTransport] = None,
        stream: bool = False,
        stream_intermediate_steps: bool = True,
        store_events: bool = False,
        events_to_skip: Optional[Sequence[Union[WorkflowEvent, str]]] = None,
        stream_buffer: int = 100,
    ) -> None:
        if input_schema is not None and not isinstance(input_schema, type):
            raise ConfigurationError(
                f"input_schema must be a type, got {type(input_schema).__name__}"
            )
        if stream_buffer < 1:
            raise ConfigurationError("stream_buffer must be >= 1")

        self.name = name or "workflow"
        self.workflow_id = workflow_id or str(uuid.uuid4())
        self.description = description
        self.steps: List[Node] = self._normalise_steps(steps)

        self.storage = storage
        self.session_id = session_id
        self.user_id = user_id
        self.session_state: Dict[str, Any] = dict(session_state or {})
        self.input_schema = input_schema

        self.transport = transport
        self.stream = stream
        self.stream_intermediate_steps = stream_intermediate_steps
        self.store_events = store_events
        self.events_to_skip = {WorkflowEvent(e) for e in (events_to_skip or [])}
        self.stream_buffer = stream_buffer

        self.run_id: Optional[str] = None
        self.run_response: Optional[WorkflowRunResponse] = None
        self.status = RunStatus.PENDING

        self._handlers: Dict[WorkflowEvent, List[EventHandler]] = defaultdict(list)
        self._events: List[WorkflowRunEvent] = []
        self._store = StepOutputStore()
        self._metrics = WorkflowMetrics(workflow_id=self.workflow_id)
        self._lock = threading.Lock()
        self._session: Optional[WorkflowSession] = None

    # ------------------------------------------------------------------
    # Construction helpers
    def _normalise_steps(self, steps: Any) -> List[Node]:
        if steps is None:
            return []
        if isinstance(steps, Node):
            return [steps]
        if callable(steps):
            return [Step(name=FUNCTION_WORKFLOW, executor=steps, max_retries=0)]
        if isinstance(steps, (list, tuple)):
            return coerce_nodes(list(steps), self.name)
        raise UnsupportedNodeTypeError(
            f"unsupported workflow steps type: {type(steps).__name__}"
        )

    # ------------------------------------------------------------------
    # Accessors
    def on_event(self, event: Union[WorkflowEvent, str], handler: EventHandler) -> None:
        """Register ``handler`` for ``event``; handlers run in registration order."""
        with self._lock:
            self._handlers[WorkflowEvent(event)].append(handler)

    def get_step_output(self, step_name: str) -> Optional[StepOutput]:
        return self._store.get(step_name)

    @property
    def step_outputs(self) -> Dict[str, StepOutput]:
        return self._store.snapshot()

    def get_metrics(self) -> WorkflowMetrics:
        with self._lock:
            return self._metrics.model_copy(deep=True)

    @property
    def events(self) -> List[WorkflowRunEvent]:
        with self._lock:
            return list(self._events)

    # ------------------------------------------------------------------
    # Input handling
    def validate_input(self, message: Any) -> Any:
        """Check ``message`` against ``input_schema``.

        Dicts are validated into a pydantic schema model; anything else
        must already be an instance of the schema.
        """
        schema = self.input_schema
        if schema is None:
            return message
        if isinstance(message, schema):
            return message
        if issubclass(schema, BaseModel) and isinstance(message, dict):
            try:
                return schema.model_validate(message)
            except ValidationError as exc:
                raise InputValidationError(
                    f"input validation failed for {schema.__name__}: {exc}"
                ) from exc
        raise InputValidationError(
            f"input type mismatch: expected {schema.__name__}, got {type(message).__name__}"
        )

    @staticmethod
    def create_execution_input(
        message: Any, additional_data: Optional[Dict[str, Any]] = None
    ) -> WorkflowExecutionInput:
        if isinstance(message, WorkflowExecutionInput):
            execution_input = message.model_copy()
        elif isinstance(message, dict) and "message" in message:
            extra = message.get("additional_data")
            execution_input = WorkflowExecutionInput(
                message=message["message"],
                additional_data=dict(extra) if isinstance(extra, dict) else {},
            )
        else:
            execution_input = WorkflowExecutionInput(message=message)

        if additional_data:
            execution_input.additional_data = {
                **execution_input.additional_data,
                **additional_data,
            }
        return execution_input

    # ------------------------------------------------------------------
    # Events
    async def _emit(self, event: WorkflowRunEvent) -> None:
        if event.event in self.events_to_skip:
            return
        with self._lock:
            if self.store_events:
                self._events.append(event)
            handlers = list(self._handlers.get(event.event, []))

        for handler in handlers:
            result = handler(event)
            if inspect.isawaitable(result):
                await result

        if self.transport is not None and (
            self.stream_intermediate_steps or event.event == WorkflowEvent.WORKFLOW_COMPLETED
        ):
            await self.transport.publish(event)

    # ------------------------------------------------------------------
    # Sessions
    async def _load_session(self) -> None:
        if self.storage is None or not self.session_id:
            return
        session = await self.storage.load(self.session_id)
        self._session = session
        if session is not None:
            logger.debug(f"Loaded session {self.session_id} for workflow {self.workflow_id}")
            self.session_state = dict(session.state.get("session_state", {}))

    async def _save_session(self, run_id: str, status: RunStatus) -> None:
        if self.storage is None or not self.session_id:
            return
        session = WorkflowSession(
            session_id=self.session_id,
            workflow_id=self.workflow_id,
            user_id=self.user_id,
            state={
                "session_state": self.session_state,
                "last_run": {"run_id": run_id, "status": status.value},
            },
        )
        if self._session is not None:
            session.created_at = self._session.created_at
        session.touch()
        await self.storage.save(session)
        self._session = session

    # ------------------------------------------------------------------
    # Metrics
    def _record_step(self, name: str, metrics: StepMetrics, success: bool) -> None:
        with self._lock:
            self._metrics.steps_executed += 1
            if success:
                self._metrics.steps_succeeded += 1
            else:
                self._metrics.steps_failed += 1
            self._metrics.total_tokens += metrics.tokens_used
            self._metrics.total_cost += metrics.cost
            self._metrics.step_metrics[name] = metrics

    def _merge_output(self, name: str, output: StepOutput) -> None:
        for inner in output.loop_step_outputs or []:
            if inner.step_name:
                self._merge_output(inner.step_name, inner)
        self._store.record(name, output)

    # ------------------------------------------------------------------
    # Execution
    async def run(
        self,
        message: Any = None,
        *,
        context: Optional[RunContext] = None,
        additional_data: Optional[Dict[str, Any]] = None,
        stream: Optional[bool] = None,
    ) -> WorkflowRunResponse:
        """Execute the workflow once and return its run response.

        Failures are re-raised after the run has been finalised, so
        ``run_response``, metrics and the completed event are always
        available. Cancelling ``context`` ends the run with
        ``CancellationError``.
        """
        message = self.validate_input(message)
        streaming = self.stream if stream is None else stream

        run_id = str(uuid.uuid4())
        run_context = RunContext(run_id, emitter=self._emit, parent=context)
        started_at = _utcnow()

        self.run_id = run_id
        self.status = RunStatus.RUNNING
        self._store.clear()
        with self._lock:
            self._events = []
            self._metrics = WorkflowMetrics(
                workflow_id=self.workflow_id, run_id=run_id, start_time=started_at
            )

        execution_input = self.create_execution_input(message, additional_data)
        logger.info(f"Workflow '{self.name}' run {run_id} started")

        final_output: Optional[StepOutput] = None
        failure: Optional[Exception] = None
        status = RunStatus.COMPLETED
        try:
            await self._load_session()
            await run_context.emit(
                WorkflowEvent.WORKFLOW_STARTED,
                {"input": execution_input.to_dict()},
                workflow_id=self.workflow_id,
                run_id=run_id,
            )
            final_output = await self._execute(run_context, execution_input, streaming)
        except CancellationError as exc:
            status, failure = RunStatus.CANCELLED, exc
            logger.warning(f"Workflow '{self.name}' run {run_id} cancelled: {exc}")
        except Exception as exc:
            status, failure = RunStatus.FAILED, exc
            logger.error(f"Workflow '{self.name}' run {run_id} failed: {exc}")

        response = self._finalise(run_id, started_at, status, final_output, failure)
        await run_context.emit(
            WorkflowEvent.WORKFLOW_COMPLETED,
            {"status": status.value, "metrics": response.metrics.to_dict()},
            workflow_id=self.workflow_id,
            run_id=run_id,
        )
        await self._save_session(run_id, status)

        if failure is not None:
            raise failure
        logger.info(f"Workflow '{self.name}' run {run_id} completed")
        return response

    def _finalise(
        self,
        run_id: str,
        started_at: datetime,
        status: RunStatus,
        final_output: Optional[StepOutput],
        failure: Optional[Exception],
    ) -> WorkflowRunResponse:
        ended_at = _utcnow()
        with self._lock:
            self._metrics.end_time = ended_at
            self._metrics.duration_ms = int((ended_at - started_at).total_seconds() * 1000)
            self._metrics.success = failure is None
            self._metrics.error = str(failure) if failure is not None else None
            metrics = self._metrics.model_copy(deep=True)

        response = WorkflowRunResponse(
            run_id=run_id,
            workflow_id=self.workflow_id,
            status=status,
            content=final_output.content if final_output is not None else None,
            event=WorkflowEvent.WORKFLOW_COMPLETED,
            metadata={"workflow_name": self.name},
            metrics=metrics,
            created_at=started_at,
            updated_at=ended_at,
        )
        self.status = status
        self.run_response = response
        return response

    async def _execute(
        self,
        context: RunContext,
        execution_input: WorkflowExecutionInput,
        streaming: bool,
    ) -> Optional[StepOutput]:
        base_input = StepInput.from_execution_input(execution_input)
        last_output: Optional[StepOutput] = None

        for index, node in enumerate(self.steps):
            context.raise_if_cancelled()
            label = node.name or f"step_{index}"
            step_input = base_input.branch(
                previous_step_content=last_output.content if last_output is not None else None,
                previous_step_outputs=self._store.snapshot(),
            )

            await context.emit(
                WorkflowEvent.STEP_STARTED, None, step_name=label, step_index=index
            )
            started = StepMetrics(start_time=_utcnow())
            try:
                if streaming and isinstance(node, Step) and node.supports_streaming:
                    output = await self._stream_step(context, node, step_input, index)
                else:
                    output = await node.execute(context, step_input)
            except CancellationError:
                raise
            except Exception as exc:
                self._record_step(label, started.finish(False, str(exc)), success=False)
                raise

            name = output.step_name or label
            metrics = output.metrics or started.finish(True)
            if output.skipped:
                logger.warning(f"Step '{name}' skipped: {output.metadata.get('error')}")
            self._record_step(name, metrics, success=True)
            self._merge_output(name, output)

            await context.emit(
                WorkflowEvent.STEP_COMPLETED,
                output,
                step_name=name,
                step_index=index,
                metrics=metrics.model_dump(mode="json"),
            )
            last_output = output

        return last_output

    async def _stream_step(
        self, context: RunContext, step: Step, step_input: StepInput, index: int
    ) -> StepOutput:
        """Consume ``step``'s chunk stream through a bounded queue."""
        queue: asyncio.Queue = asyncio.Queue(self.stream_buffer)
        metrics = StepMetrics(start_time=_utcnow())

        async def produce() -> None:
            cancelled = False
            try:
                async for chunk in step.stream(step_input):
                    await queue.put(chunk)
            except asyncio.CancelledError:
                cancelled = True
                raise
            finally:
                if not cancelled:
                    await queue.put(_STREAM_END)

        producer = asyncio.ensure_future(produce())
        chunks: List[str] = []
        try:
            while True:
                chunk = await context.guard(queue.get())
                if chunk is _STREAM_END:
                    break
                chunks.append(str(chunk))
                await context.emit(
                    WorkflowEvent.STEP_OUTPUT,
                    chunk,
                    step_name=step.display_name,
                    step_index=index,
                )
            await producer
        except CancellationError:
            raise
        except Exception as exc:
            raise ExecutionError(
                f"step '{step.display_name}' stream failed: {exc}",
                node_name=step.display_name,
                index=index,
            ) from exc
        finally:
            if not producer.done():
                producer.cancel()
            await asyncio.gather(producer, return_exceptions=True)

        return StepOutput(
            content="".join(chunks),
            step_name=step.name,
            executor_name=step.executor_name,
            executor_type=step.executor_type,
            metrics=metrics.finish(True),
        )
