"""Executor capabilities wrapped by a Step."""

from __future__ import annotations

import abc
import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, AsyncIterator, Callable, Optional, Protocol, runtime_checkable

from .contracts import ExecutorType, StepInput, StepOutput

if TYPE_CHECKING:
    from .context import RunContext

logger = logging.getLogger(__name__)

ExecutorFunc = Callable[[StepInput], Any]


@runtime_checkable
class Agent(Protocol):
    """Capability consumed from agent and team collaborators."""

    name: str

    async def run(self, message: str) -> Any:
        """Return a result for ``message`` or raise."""


@runtime_checkable
class StreamingAgent(Agent, Protocol):
    """Agent that can also yield its answer incrementally."""

    def stream(self, message: str) -> AsyncIterator[str]:
        """Yield text chunks for ``message``."""


def to_step_output(result: Any) -> StepOutput:
    """Coerce an executor's return value into a ``StepOutput``."""
    if isinstance(result, StepOutput):
        return result
    return StepOutput(content=result)


class BaseExecutor(metaclass=abc.ABCMeta):
    """Uniform ``execute`` contract over functions, agents and teams."""

    executor_type: ExecutorType

    @property
    @abc.abstractmethod
    def name(self) -> str:
        raise NotImplementedError

    @abc.abstractmethod
    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        raise NotImplementedError

    @property
    def supports_streaming(self) -> bool:
        return False


class FunctionExecutor(BaseExecutor):
    """Run a plain function or coroutine function.

    Synchronous functions run in a worker thread so blocking work does not
    stall the event loop.
    """

    executor_type = ExecutorType.FUNCTION

    def __init__(self, fn: ExecutorFunc, name: Optional[str] = None) -> None:
        self._fn = fn
        self._name = name

    @property
    def name(self) -> str:
        return self._name or "anonymous_function"

    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        context.raise_if_cancelled()
        if inspect.iscoroutinefunction(self._fn):
            result = await self._fn(step_input)
        else:
            result = await asyncio.to_thread(self._fn, step_input)
            if inspect.isawaitable(result):
                result = await result
        return to_step_output(result)


class AgentExecutor(BaseExecutor):
    """Adapt an agent capability to the executor contract."""

    executor_type = ExecutorType.AGENT
    _fallback_name = "unnamed_agent"

    def __init__(self, agent: Any) -> None:
        self._agent = agent

    @property
    def agent(self) -> Any:
        return self._agent

    @property
    def name(self) -> str:
        return getattr(self._agent, "name", None) or self._fallback_name

    @property
    def supports_streaming(self) -> bool:
        return isinstance(self._agent, StreamingAgent)

    @staticmethod
    def build_message(step_input: StepInput) -> str:
        message = step_input.get_message_as_string()
        if not message and step_input.previous_step_content is not None:
            message = str(step_input.previous_step_content)
        return message

    async def execute(self, context: "RunContext", step_input: StepInput) -> StepOutput:
        context.raise_if_cancelled()
        message = self.build_message(step_input)
        logger.debug(f"Running {self.executor_type.value} {self.name}")
        result = self._agent.run(message)
        if inspect.isawaitable(result):
            result = await result
        return to_step_output(result)

    def stream(self, step_input: StepInput) -> AsyncIterator[str]:
        if not self.supports_streaming:
            raise TypeError(f"{self.executor_type.value} {self.name} does not support streaming")
        return self._agent.stream(self.build_message(step_input))


class TeamExecutor(AgentExecutor):
    """Adapt a team capability; identical contract to an agent."""

    executor_type = ExecutorType.TEAM
    _fallback_name = "unnamed_team"
