import pytest

from gentrack.models import BatchStatusResponse, SubmitBatchResponse


def test_submit_response_accepts_original_spelling() -> None:
    response = SubmitBatchResponse.model_validate({"taskIDs": ["t1", "t2"], "totalTasks": 2})

    assert response.task_ids == ["t1", "t2"]
    assert response.assign(item_ids=["a", "b"]) == {"a": "t1", "b": "t2"}


def test_submit_response_explicit_pairs_ignore_order() -> None:
    response = SubmitBatchResponse.model_validate(
        {"data": {"tasks": [{"itemId": "b", "taskId": "t2"}, {"itemId": "a", "taskId": "t1"}]}}
    )

    assert response.assign(item_ids=["a", "b"]) == {"a": "t1", "b": "t2"}


def test_submit_response_count_mismatch_is_rejected() -> None:
    response = SubmitBatchResponse.model_validate({"taskIds": ["t1"]})

    with pytest.raises(ValueError, match="1 task id"):
        response.assign(item_ids=["a", "b"])


def test_submit_response_missing_pair_is_rejected() -> None:
    response = SubmitBatchResponse.model_validate({"tasks": [{"itemId": "a", "taskId": "t1"}]})

    with pytest.raises(ValueError, match="b"):
        response.assign(item_ids=["a", "b"])


def test_status_response_maps_prompt_keyed_results() -> None:
    response = BatchStatusResponse.model_validate(
        {
            "project_id": "proj-1",
            "results": [
                {
                    "prompt_id": "p1",
                    "status": "completed",
                    "images": [{"id": "img-1", "url": "https://cdn/img-1.png", "width": 512}],
                },
                {"prompt_id": "p2", "status": "failed", "error": "rate limited"},
            ],
        }
    )

    assert response.container_id == "proj-1"
    assert [result.task_ref for result in response.results] == ["p1", "p2"]
    assert response.results[0].images[0].url == "https://cdn/img-1.png"
    assert response.results[1].error_message == "rate limited"


def test_status_response_drops_entries_without_a_ref() -> None:
    response = BatchStatusResponse.model_validate(
        {"results": [{"status": "completed"}, "garbage", {"taskRef": "t1", "status": "queued"}]}
    )

    assert [result.task_ref for result in response.results] == ["t1"]
