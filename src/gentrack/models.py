import typing as t

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

log = structlog.get_logger(__name__)


class GenerationParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    width: int = Field(default=1024, gt=0)
    height: int = Field(default=1024, gt=0)
    count: int = Field(default=1, gt=0)
    prompt: str | None = None
    extra: dict[str, t.Any] = Field(default_factory=dict)


class GeneratedArtifact(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    url: str = Field(validation_alias=AliasChoices("url", "imageUrl", "image_url"))
    width: int | None = None
    height: int | None = None
    file_size: int | None = Field(default=None, validation_alias=AliasChoices("file_size", "fileSize"))


class TaskAssignment(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    item_id: str = Field(
        validation_alias=AliasChoices("item_id", "itemId", "prompt_id", "promptId", "id")
    )
    task_id: str = Field(validation_alias=AliasChoices("task_id", "taskId", "taskID"))


class SubmitBatchResponse(BaseModel):
    """
    Task ids issued by a submit-batch call.

    Backends either answer with a positional ``taskIds`` list or with explicit
    item/task pairs under ``tasks``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    task_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("task_ids", "taskIds", "taskIDs"),
    )
    tasks: list[TaskAssignment] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def unify_nested_fields(cls, data: t.Any):
        if not isinstance(data, dict):
            return data
        inner = data.get("data")
        if isinstance(inner, dict):
            return inner
        return data

    def assign(self, *, item_ids: t.Sequence[str]) -> dict[str, str]:
        """
        Pair submitted item ids with the issued task ids.

        Parameters
        ----------
        item_ids : typing.Sequence[str]
            Item ids in the order they were sent.

        Returns
        -------
        dict[str, str]
            Item id to task id mapping.

        Raises
        ------
        ValueError
            If the response does not cover every submitted item.
        """
        if self.tasks:
            mapping = {task.item_id: task.task_id for task in self.tasks if task.task_id}
            missing = [item_id for item_id in item_ids if item_id not in mapping]
            if missing:
                raise ValueError(f"No task id issued for item(s): {', '.join(missing)}")
            return {item_id: mapping[item_id] for item_id in item_ids}
        if len(self.task_ids) != len(item_ids):
            raise ValueError(
                f"Backend issued {len(self.task_ids)} task id(s) for {len(item_ids)} item(s)"
            )
        if not all(self.task_ids):
            raise ValueError("Backend issued an empty task id")
        return dict(zip(item_ids, self.task_ids))


class BatchStatusResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    task_ref: str = Field(
        validation_alias=AliasChoices("task_ref", "taskRef", "prompt_id", "task_id", "taskId")
    )
    status: str | None = None
    error_message: str | None = Field(
        default=None,
        validation_alias=AliasChoices("error_message", "errorMessage", "error"),
    )
    images: list[GeneratedArtifact] = Field(default_factory=list)


class BatchStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    container_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("container_id", "containerId", "project_id", "projectId"),
    )
    results: list[BatchStatusResult] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def drop_malformed_results(cls, data: t.Any):
        if not isinstance(data, dict):
            return data
        inner = data.get("data")
        if isinstance(inner, dict) and "results" in inner:
            data = inner
        results = data.get("results")
        if not isinstance(results, list):
            return data
        kept: list[t.Any] = []
        for entry in results:
            if isinstance(entry, dict) and any(
                entry.get(key) for key in ("task_ref", "taskRef", "prompt_id", "task_id", "taskId")
            ):
                kept.append(entry)
            else:
                log.debug(event="Dropped malformed status entry", entry=entry)
        return {**data, "results": kept}
