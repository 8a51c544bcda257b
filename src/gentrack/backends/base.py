from __future__ import annotations

import typing as t
from abc import ABC, abstractmethod

import httpx
import pydantic
import structlog

from gentrack.exceptions import BackendRequestError
from gentrack.models import BatchStatusResponse, GenerationParams, SubmitBatchResponse
from gentrack.status import ItemKind, KeyStrategy

if t.TYPE_CHECKING:
    from gentrack.store import WorkItem

log = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8080/api/v1"
DEFAULT_TIMEOUT_SECONDS = 10.0


class BaseBackend(ABC):
    """
    HTTP adapter for one kind of generation job.

    Backends implement:
    - build_submit_body: serialize the selected items and parameters
    - submit_path / status_path: endpoint layout of the kind

    Parameters
    ----------
    base_url : str, optional
        API root, without trailing slash.
    api_token : str | None, optional
        Bearer token sent with every call.
    client_factory : typing.Callable[[], httpx.AsyncClient] | None, optional
        Factory for the async client used by each call.
    timeout_seconds : float, optional
        Timeout of the default client factory.
    """

    name: str = "base"
    kind: ItemKind
    key_strategy: KeyStrategy = KeyStrategy.TASK_ID
    submit_path_template: str
    status_path_template: str = "/projects/{container_id}/batch-status"

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_token: str | None = None,
        client_factory: t.Callable[[], httpx.AsyncClient] | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        stripped = base_url.strip().rstrip("/")
        if not stripped:
            raise ValueError("Backend base URL cannot be empty")
        self.base_url = stripped
        self._api_token = api_token
        self._client_factory: t.Callable[[], httpx.AsyncClient] = client_factory or (
            lambda: httpx.AsyncClient(timeout=timeout_seconds)
        )

    def build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    def submit_path(self, *, container_id: str) -> str:
        return self.submit_path_template.format(container_id=container_id)

    def status_path(self, *, container_id: str) -> str:
        return self.status_path_template.format(container_id=container_id)

    @abstractmethod
    def build_submit_body(
        self,
        *,
        container_id: str,
        items: t.Sequence[WorkItem],
        params: GenerationParams,
    ) -> dict[str, t.Any]:
        """
        Build the JSON body of a submit-batch call.

        Parameters
        ----------
        container_id : str
            Project (or job container) the items belong to.
        items : typing.Sequence[WorkItem]
            Items submitted together.
        params : GenerationParams
            Generation parameters shared by the batch.

        Returns
        -------
        dict[str, typing.Any]
            JSON-ready request body.
        """

    def build_status_body(self, *, task_refs: t.Sequence[str]) -> dict[str, t.Any]:
        return {"task_ids": list(task_refs)}

    def watch_ref(self, item: WorkItem) -> str | None:
        """
        Return the ref this backend expects for ``item`` in status calls.

        Parameters
        ----------
        item : WorkItem
            Submitted work item.

        Returns
        -------
        str | None
            Item id or remote task id depending on ``key_strategy``.
        """
        if self.key_strategy is KeyStrategy.ITEM_ID:
            return item.id
        return item.remote_task_id

    async def _post_json(
        self,
        *,
        stage: str,
        path: str,
        body: dict[str, t.Any],
    ) -> t.Any:
        url = f"{self.base_url}{path}"
        try:
            async with self._client_factory() as client:
                response = await client.post(url=url, headers=self.build_headers(), json=body)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as error:
            raise BackendRequestError(
                f"{self.name} {stage} request returned {error.response.status_code}",
                stage=stage,
                status_code=error.response.status_code,
            ) from error
        except httpx.HTTPError as error:
            raise BackendRequestError(
                f"{self.name} {stage} request failed: {error}",
                stage=stage,
            ) from error
        except ValueError as error:
            raise BackendRequestError(
                f"{self.name} {stage} response is not valid JSON",
                stage=stage,
            ) from error

    async def submit_batch(
        self,
        *,
        container_id: str,
        items: t.Sequence[WorkItem],
        params: GenerationParams,
    ) -> SubmitBatchResponse:
        """
        Submit all items in one call and return the issued task ids.

        Raises
        ------
        BackendRequestError
            If the call fails or the response cannot be parsed.
        """
        body = self.build_submit_body(container_id=container_id, items=items, params=params)
        path = self.submit_path(container_id=container_id)
        log.debug(
            event="Submitting batch",
            backend=self.name,
            container_id=container_id,
            path=path,
            item_count=len(items),
        )
        payload = await self._post_json(stage="submit", path=path, body=body)
        try:
            return SubmitBatchResponse.model_validate(payload)
        except pydantic.ValidationError as error:
            raise BackendRequestError(
                f"{self.name} submit response is malformed",
                stage="submit",
            ) from error

    async def batch_status(
        self,
        *,
        container_id: str,
        task_refs: t.Sequence[str],
    ) -> BatchStatusResponse:
        """
        Query the status of every ref in one call.

        Raises
        ------
        BackendRequestError
            If the call fails or the response cannot be parsed.
        """
        path = self.status_path(container_id=container_id)
        payload = await self._post_json(
            stage="status",
            path=path,
            body=self.build_status_body(task_refs=task_refs),
        )
        try:
            return BatchStatusResponse.model_validate(payload)
        except pydantic.ValidationError as error:
            raise BackendRequestError(
                f"{self.name} status response is malformed",
                stage="status",
            ) from error
