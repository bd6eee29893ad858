"""Step output store tests."""

from workweave import StepOutput
from workweave.store import StepOutputStore


def test_latest_write_wins_and_moves_to_end():
    store = StepOutputStore()
    store.record("a", StepOutput(content=1))
    store.record("b", StepOutput(content=2))
    store.record("a", StepOutput(content=3))

    assert store.get("a").content == 3
    assert store.names() == ["b", "a"]
    assert store.latest()[0] == "a"
    assert len(store) == 2
    assert "b" in store


def test_snapshot_is_a_copy():
    store = StepOutputStore()
    store.record("a", StepOutput(content=1))

    snapshot = store.snapshot()
    snapshot["b"] = StepOutput()

    assert "b" not in store


def test_clear():
    store = StepOutputStore()
    store.record("a", StepOutput())
    store.clear()

    assert len(store) == 0
    assert store.latest() is None
    assert store.get("a") is None
