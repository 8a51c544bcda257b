from .api import track as track
from .config import TrackerConfig as TrackerConfig
from .context import TrackerScope as TrackerScope
from .events import HistoryChanged as HistoryChanged
from .events import HistoryEvents as HistoryEvents
from .exceptions import PollTransportError as PollTransportError
from .exceptions import RetryError as RetryError
from .exceptions import SubmissionError as SubmissionError
from .exceptions import TrackerError as TrackerError
from .models import GenerationParams as GenerationParams
from .poller import PollingSession as PollingSession
from .status import HistoryNotify as HistoryNotify
from .status import ItemKind as ItemKind
from .status import ItemStatus as ItemStatus
from .store import WorkItem as WorkItem
from .store import WorkItemStore as WorkItemStore
from .tracker import GenerationJobTracker as GenerationJobTracker

__all__ = [
    "track",
    "TrackerConfig",
    "TrackerScope",
    "HistoryChanged",
    "HistoryEvents",
    "PollTransportError",
    "RetryError",
    "SubmissionError",
    "TrackerError",
    "GenerationParams",
    "PollingSession",
    "HistoryNotify",
    "ItemKind",
    "ItemStatus",
    "WorkItem",
    "WorkItemStore",
    "GenerationJobTracker",
]
