from __future__ import annotations

from enum import Enum

import structlog

log = structlog.get_logger(__name__)


class ItemStatus(str, Enum):
    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_outstanding(self) -> bool:
        return self in OUTSTANDING_STATUSES


TERMINAL_STATUSES = frozenset({ItemStatus.COMPLETED, ItemStatus.FAILED})
OUTSTANDING_STATUSES = frozenset({ItemStatus.QUEUED, ItemStatus.PROCESSING})


class ItemKind(str, Enum):
    PROMPT = "prompt"
    REFERENCE_IMAGE = "reference_image"
    SHOP_CONFIG = "shop_config"


class KeyStrategy(str, Enum):
    """How a backend keys its batch-status results."""

    TASK_ID = "task_id"
    ITEM_ID = "item_id"


def parse_remote_status(value: object) -> ItemStatus | None:
    """
    Map a wire status string onto ``ItemStatus``.

    Parameters
    ----------
    value : object
        Raw status value from a batch-status result.

    Returns
    -------
    ItemStatus | None
        Parsed status, or ``None`` when the value is not recognized.
    """
    if not isinstance(value, str):
        return None
    try:
        return ItemStatus(value.strip().lower())
    except ValueError:
        log.debug(event="Unrecognized remote status", status=value)
        return None


class HistoryNotify(str, Enum):
    """When the reconciler emits ``HistoryChanged``."""

    ONCE_PER_SESSION = "once_per_session"
    EVERY_PASS = "every_pass"
