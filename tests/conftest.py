import pytest

from gentrack.status import ItemKind
from gentrack.store import WorkItem
from gentrack.tracker import GenerationJobTracker
from tests.mocks.backend import FakeGenerationAPI, make_backend


@pytest.fixture(autouse=True)
def test_set_env(monkeypatch):
    for name in (
        "GENTRACK_BASE_URL",
        "GENTRACK_API_TOKEN",
        "GENTRACK_POLL_INTERVAL_SECONDS",
        "GENTRACK_MAX_POLL_TICKS",
        "GENTRACK_MAX_POLL_SECONDS",
        "GENTRACK_REQUEST_TIMEOUT_SECONDS",
        "GENTRACK_HISTORY_NOTIFY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def api() -> FakeGenerationAPI:
    """Fake backend reporting every ref completed once its script runs out."""
    return FakeGenerationAPI(default_status="completed")


@pytest.fixture
def prompt_items() -> list[WorkItem]:
    return [
        WorkItem(id=f"p{index}", kind=ItemKind.PROMPT, payload={"text": f"prompt {index}"})
        for index in (1, 2, 3)
    ]


@pytest.fixture
def tracker(api: FakeGenerationAPI, prompt_items: list[WorkItem]) -> GenerationJobTracker:
    """
    Create a prompt tracker polling every 10ms.

    Returns
    -------
    GenerationJobTracker
        Tracker with three pending prompts loaded and selected.
    """
    tracker = GenerationJobTracker(
        backend=make_backend(api),
        container_id="proj-1",
        poll_interval_seconds=0.01,
    )
    tracker.load_items(prompt_items)
    return tracker
