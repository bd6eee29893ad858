"""Running pydantic_ai agents as workweave steps."""

import asyncio

from pydantic_ai import Agent
from pydantic_ai.models.test import TestModel

from workweave import CancellationError, RunContext, Step, Workflow, WorkflowEvent
from workweave.persistence import get_storage
from workweave.transports import JSONEventTransport


def create_agent(name: str, answer: str) -> Agent:
    return Agent(TestModel(custom_output_text=answer), name=name)


async def agent_usage():
    """Chain two agents; the second sees the first's answer."""
    print("🤖 Agent workflow")

    workflow = Workflow(
        name="research",
        steps=[
            Step(name="research", agent=create_agent("researcher", "Notes about tides."), max_retries=1),
            Step(
                name="summarise",
                executor=lambda s: f"Summary of: {s.get_step_content('research')}",
            ),
        ],
        storage=get_storage(),
        session_id="demo-session",
    )
    response = await workflow.run("Why do tides happen?")
    print(f"✅ {response.content}")


async def streaming_usage():
    """Stream agent output as JSON lines."""
    print("\n📡 Streaming workflow")

    transport = JSONEventTransport(print)
    workflow = Workflow(
        name="stream",
        steps=[Step(name="writer", agent=create_agent("writer", "A short streamed story."))],
        transport=transport,
        stream=True,
        events_to_skip=[WorkflowEvent.STEP_STARTED],
    )
    response = await workflow.run("Tell me a story")
    print(f"✅ {response.content}")


async def cancellation_usage():
    print("\n🛑 Cancelling a run")

    async def slow(step_input):
        await asyncio.sleep(10)
        return "never"

    context = RunContext()
    workflow = Workflow(name="slow", steps=[slow])
    asyncio.get_running_loop().call_later(0.1, context.cancel, "user pressed stop")
    try:
        await workflow.run("go", context=context)
    except CancellationError as exc:
        print(f"⚠️ cancelled: {exc} ({workflow.status.value})")


if __name__ == "__main__":
    asyncio.run(agent_usage())
    asyncio.run(streaming_usage())
    asyncio.run(cancellation_usage())
