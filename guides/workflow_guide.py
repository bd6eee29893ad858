"""Composing workweave workflows from plain functions."""

import asyncio

from workweave import Condition, Loop, Parallel, Router, Step, Steps, Workflow, WorkflowEvent
from workweave.condition import if_content_contains
from workweave.loop import for_n
from workweave.router import route_by_content


def normalise(step_input):
    return step_input.get_message_as_string().strip().lower()


def count_words(step_input):
    return len(step_input.previous_step_content.split())


def count_chars(step_input):
    return len(step_input.previous_step_content)


async def basic_usage():
    """Two functions chained through previous_step_content."""
    print("🚀 Basic workweave usage")

    workflow = Workflow(
        name="shout",
        steps=[
            Step(name="upper", executor=lambda s: s.get_message_as_string().upper()),
            Step(name="prefix", executor=lambda s: f"Processed: {s.previous_step_content}"),
        ],
    )
    response = await workflow.run("hello world")
    print(f"✅ {response.content} ({response.status.value})")


async def composed_usage():
    """Parallel fan-out, a condition, a loop and a router in one run."""
    print("\n🔄 Composed workflow")

    workflow = Workflow(
        name="text_stats",
        steps=[
            Step(name="normalise", executor=normalise),
            Parallel(name="stats", steps=[Step(name="words", executor=count_words), count_chars]),
            Condition(
                name="long_text",
                predicate=lambda s: s.get_step_content("stats")["words"] > 3,
                then_steps=[lambda s: "long text"],
                else_steps=[lambda s: "short text"],
            ),
            Loop(name="polish", steps=[lambda s: f"{s.previous_step_content}!"], condition=for_n(2)),
            Router(
                name="triage",
                route_func=route_by_content(),
                routes={"default": [lambda s: f"routed: {s.previous_step_content}"]},
            ),
            Steps(name="finish", steps=[lambda s: s.get_all_previous_content()], collect_outputs=False),
        ],
        store_events=True,
    )
    workflow.on_event(
        WorkflowEvent.STEP_COMPLETED,
        lambda event: print(f"  ✔ {event.metadata['step_name']}"),
    )

    response = await workflow.run("  The quick brown fox jumps  ")
    print(response.content)
    metrics = workflow.get_metrics()
    print(f"✅ {metrics.steps_succeeded}/{metrics.steps_executed} steps in {metrics.duration_ms}ms")


async def conditional_usage():
    print("\n🔀 Content checks")

    workflow = Workflow(
        name="alerts",
        steps=[
            Step(name="read", executor=lambda s: s.get_message_as_string()),
            Condition(
                name="alert",
                predicate=if_content_contains("error"),
                then_steps=[lambda s: "page the on-call"],
                else_steps=[lambda s: "all quiet"],
            ),
        ],
    )
    for message in ("disk error on node 3", "nightly backup ok"):
        response = await workflow.run(message)
        print(f"  {message!r} -> {response.content}")


if __name__ == "__main__":
    asyncio.run(basic_usage())
    asyncio.run(composed_usage())
    asyncio.run(conditional_usage())
