from __future__ import annotations

import typing as t

from gentrack.backends.base import BaseBackend
from gentrack.models import GenerationParams
from gentrack.status import ItemKind, KeyStrategy

if t.TYPE_CHECKING:
    from gentrack.store import WorkItem


class ReferenceImageBackend(BaseBackend):
    """Image-to-image generation from uploaded reference images."""

    name = "reference_image"
    kind = ItemKind.REFERENCE_IMAGE
    key_strategy = KeyStrategy.TASK_ID
    submit_path_template = "/projects/{container_id}/generate-from-images"

    def build_submit_body(
        self,
        *,
        container_id: str,
        items: t.Sequence[WorkItem],
        params: GenerationParams,
    ) -> dict[str, t.Any]:
        image_urls = [item.payload.get("imageUrl") or item.payload.get("image_url") for item in items]
        missing = [item.id for item, url in zip(items, image_urls) if not url]
        if missing:
            raise ValueError(f"Reference image(s) without an image url: {', '.join(missing)}")
        body: dict[str, t.Any] = {
            "projectId": container_id,
            "referenceImageIds": [item.id for item in items],
            "imageUrls": image_urls,
            "width": params.width,
            "height": params.height,
            "count": params.count,
            **params.extra,
        }
        if params.prompt:
            body["prompt"] = params.prompt
        return body
