"""Agent adapters for workweave steps."""

from .wrapper import PydanticAIAgent, wrap_agent

__all__ = ["PydanticAIAgent", "wrap_agent"]
