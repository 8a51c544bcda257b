from __future__ import annotations

import typing as t

from gentrack.backends.base import BaseBackend
from gentrack.models import GenerationParams
from gentrack.status import ItemKind, KeyStrategy

if t.TYPE_CHECKING:
    from gentrack.store import WorkItem


class PromptBackend(BaseBackend):
    """Text-to-image generation; status results are keyed by prompt id."""

    name = "prompt"
    kind = ItemKind.PROMPT
    key_strategy = KeyStrategy.ITEM_ID
    submit_path_template = "/projects/{container_id}/generate-images"

    def build_submit_body(
        self,
        *,
        container_id: str,
        items: t.Sequence[WorkItem],
        params: GenerationParams,
    ) -> dict[str, t.Any]:
        return {
            "projectId": container_id,
            "promptIds": [item.id for item in items],
            "width": params.width,
            "height": params.height,
            **params.extra,
        }

    def build_status_body(self, *, task_refs: t.Sequence[str]) -> dict[str, t.Any]:
        return {"prompt_ids": list(task_refs)}
