from __future__ import annotations

import typing as t

from gentrack.backends.base import BaseBackend
from gentrack.models import GenerationParams
from gentrack.status import ItemKind, KeyStrategy

if t.TYPE_CHECKING:
    from gentrack.store import WorkItem


class ShopConfigBackend(BaseBackend):
    """
    Multi-shop activity enrollment.

    Each work item is one shop's enrollment config; ``params.extra`` carries
    the activity being enrolled into.
    """

    name = "shop_config"
    kind = ItemKind.SHOP_CONFIG
    key_strategy = KeyStrategy.TASK_ID
    submit_path_template = "/multi-shop-enroll/{container_id}/jobs"
    status_path_template = "/multi-shop-enroll/{container_id}/jobs/batch-status"

    def build_submit_body(
        self,
        *,
        container_id: str,
        items: t.Sequence[WorkItem],
        params: GenerationParams,
    ) -> dict[str, t.Any]:
        return {
            "itemIds": [item.id for item in items],
            "shops": [{"id": item.id, **item.payload} for item in items],
            "activity": dict(params.extra),
        }
