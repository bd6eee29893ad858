from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional

from pydantic_ai import Agent

logger = logging.getLogger(__name__)


class PydanticAIAgent:
    """Expose a ``pydantic_ai.Agent`` through the workweave agent capability.

    ``run`` returns the agent's final output and ``stream`` yields text
    deltas, so a Step wrapping this adapter can be consumed incrementally
    when the workflow streams.
    """

    def __init__(
        self,
        agent: Agent,
        name: Optional[str] = None,
        deps: Any = None,
        **run_kwargs: Any,
    ) -> None:
        self._agent = agent
        self._name = name
        self._deps = deps
        self._run_kwargs = run_kwargs

    @property
    def name(self) -> str:
        return self._name or getattr(self._agent, "name", None) or "pydantic_ai_agent"

    @property
    def agent(self) -> Agent:
        return self._agent

    async def run(self, message: str) -> Any:
        result = await self._agent.run(message, deps=self._deps, **self._run_kwargs)
        return result.output

    async def stream(self, message: str) -> AsyncIterator[str]:
        async with self._agent.run_stream(
            message, deps=self._deps, **self._run_kwargs
        ) as result:
            async for delta in result.stream_text(delta=True):
                yield delta


def wrap_agent(agent: Any) -> Any:
    """Wrap raw ``pydantic_ai`` agents; pass any other capability through."""
    if isinstance(agent, Agent):
        logger.debug(f"Wrapping pydantic_ai agent {getattr(agent, 'name', None)!r}")
        return PydanticAIAgent(agent)
    return agent
