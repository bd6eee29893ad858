"""Contract model helpers."""

import json

from pydantic import BaseModel

from workweave import StepInput, StepOutput, WorkflowEvent, WorkflowRunEvent
from workweave.contracts import message_as_string


class Query(BaseModel):
    text: str


def test_message_as_string():
    assert message_as_string(None) == ""
    assert message_as_string("plain") == "plain"
    assert message_as_string(42) == "42"
    assert json.loads(message_as_string({"a": 1})) == {"a": 1}
    assert json.loads(message_as_string(Query(text="q"))) == {"text": "q"}


def test_get_step_content_flattens_parallel_outputs():
    step_input = StepInput(
        previous_step_outputs={
            "fan": StepOutput(
                parallel_step_outputs={
                    "a": StepOutput(content="A"),
                    "b": StepOutput(content=None),
                }
            ),
            "single": StepOutput(content="S"),
        }
    )

    assert step_input.get_step_content("fan") == {"a": "A"}
    assert step_input.get_step_content("single") == "S"
    assert step_input.get_step_content("missing") is None


def test_all_previous_content_skips_empty_outputs():
    step_input = StepInput(
        previous_step_outputs={
            "research": StepOutput(content="notes"),
            "empty": StepOutput(),
            "draft": StepOutput(content="text"),
        }
    )

    assert step_input.get_all_previous_content() == "=== research ===\nnotes\n\n=== draft ===\ntext"


def test_last_step_content_follows_recency():
    step_input = StepInput()
    assert step_input.get_last_step_content() is None

    step_input.record_output("a", StepOutput(content=1))
    step_input.record_output("b", StepOutput(content=2))
    step_input.record_output("a", StepOutput(content=3))

    assert list(step_input.previous_step_outputs) == ["b", "a"]
    assert step_input.get_last_step_content() == 3


def test_branch_isolates_outputs():
    original = StepInput(message="m", previous_step_outputs={"a": StepOutput(content=1)})

    copy = original.branch(previous_step_content="prev")
    copy.record_output("b", StepOutput(content=2))

    assert list(original.previous_step_outputs) == ["a"]
    assert copy.previous_step_content == "prev"
    assert copy.message == "m"


def test_skipped_output():
    assert StepOutput(event=WorkflowEvent.STEP_SKIPPED.value).skipped
    assert not StepOutput(content="x").skipped


def test_event_to_json():
    event = WorkflowRunEvent(
        event=WorkflowEvent.STEP_COMPLETED,
        data={"content": "done"},
        metadata={"step_name": "s"},
    )

    payload = json.loads(event.to_json())

    assert payload["event"] == "StepCompleted"
    assert payload["data"] == {"content": "done"}
    assert payload["metadata"]["step_name"] == "s"
