import pytest

from gentrack.exceptions import UnknownItemError
from gentrack.models import GenerationParams
from gentrack.status import ItemStatus
from gentrack.store import DEFAULT_FAILURE_MESSAGE, WorkItem, WorkItemStore


@pytest.fixture
def store() -> WorkItemStore:
    return WorkItemStore(
        [
            WorkItem(id="a"),
            WorkItem(id="b", status=ItemStatus.QUEUED, remote_task_id="t-b"),
            WorkItem(id="c", status=ItemStatus.COMPLETED, remote_task_id="t-c"),
        ]
    )


def test_outstanding_item_requires_remote_task_id() -> None:
    with pytest.raises(ValueError, match="remote task id"):
        WorkItem(id="x", status=ItemStatus.PROCESSING)


def test_error_message_only_kept_on_failed_items() -> None:
    item = WorkItem(id="x", status=ItemStatus.COMPLETED, remote_task_id="t", error_message="boom")

    assert item.error_message is None


def test_get_unknown_item_raises(store: WorkItemStore) -> None:
    with pytest.raises(UnknownItemError) as excinfo:
        store.get("missing")

    assert excinfo.value.item_id == "missing"
    assert isinstance(excinfo.value, KeyError)


def test_resolve_by_task_id_then_item_id(store: WorkItemStore) -> None:
    assert store.resolve("t-b").id == "b"
    assert store.resolve("b").id == "b"
    assert store.resolve("a").id == "a"
    assert store.resolve("nope") is None


def test_by_status_and_outstanding(store: WorkItemStore) -> None:
    assert [item.id for item in store.by_status("pending")] == ["a"]
    assert [item.id for item in store.outstanding()] == ["b"]
    assert store.snapshot() == {
        "a": ItemStatus.PENDING,
        "b": ItemStatus.QUEUED,
        "c": ItemStatus.COMPLETED,
    }


def test_mark_queued_reindexes_task_id(store: WorkItemStore) -> None:
    params = GenerationParams(width=512, height=512)
    store.get("b").status = ItemStatus.FAILED

    item = store.mark_queued("b", remote_task_id="t-b2", params=params)

    assert item.status is ItemStatus.QUEUED
    assert item.params == params
    assert store.resolve("t-b2") is item
    assert store.resolve("t-b") is None


def test_mark_queued_rejects_completed_item(store: WorkItemStore) -> None:
    with pytest.raises(ValueError, match="completed"):
        store.mark_queued("c", remote_task_id="t-c2", params=None)


def test_apply_remote_follows_transition_table(store: WorkItemStore) -> None:
    item = store.get("b")

    assert store.apply_remote(item, status=ItemStatus.PROCESSING)
    assert not store.apply_remote(item, status=ItemStatus.QUEUED)
    assert not store.apply_remote(item, status=ItemStatus.PENDING)
    assert store.apply_remote(item, status=ItemStatus.FAILED)
    assert item.error_message == DEFAULT_FAILURE_MESSAGE
    assert not store.apply_remote(item, status=ItemStatus.COMPLETED)
    assert item.status is ItemStatus.FAILED


def test_pending_item_ignores_polled_status(store: WorkItemStore) -> None:
    item = store.get("a")

    assert not store.apply_remote(item, status=ItemStatus.COMPLETED)
    assert item.status is ItemStatus.PENDING


def test_remove_drops_task_index(store: WorkItemStore) -> None:
    store.remove("b")

    assert "b" not in store
    assert store.resolve("t-b") is None
    assert len(store) == 2
