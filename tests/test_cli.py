import pytest
from typer.testing import CliRunner

import gentrack.cli.main as cli_main
from gentrack.api import track
from gentrack.cli.main import app
from tests.mocks.backend import BASE_URL, FakeGenerationAPI

runner = CliRunner()


def _use_fake_api(monkeypatch: pytest.MonkeyPatch, api: FakeGenerationAPI) -> None:
    monkeypatch.setenv("GENTRACK_BASE_URL", BASE_URL)
    monkeypatch.setenv("GENTRACK_POLL_INTERVAL_SECONDS", "0.01")

    def fake_track(**kwargs):
        return track(client_factory=api.client_factory, **kwargs)

    monkeypatch.setattr(cli_main, "track", fake_track)


def test_submit_and_watch(monkeypatch: pytest.MonkeyPatch):
    api = FakeGenerationAPI(default_status="completed")
    _use_fake_api(monkeypatch, api)

    result = runner.invoke(app, ["submit", "proj-1", "p1", "p2", "--width", "512"])

    assert result.exit_code == 0
    assert "completed" in result.output
    assert api.submit_calls[0]["promptIds"] == ["p1", "p2"]
    assert api.submit_calls[0]["width"] == 512


def test_submit_without_watch(monkeypatch: pytest.MonkeyPatch):
    api = FakeGenerationAPI(default_status="completed")
    _use_fake_api(monkeypatch, api)

    result = runner.invoke(app, ["submit", "proj-1", "p1", "--no-watch"])

    assert result.exit_code == 0
    assert "queued" in result.output
    assert api.status_calls == []


def test_submit_reference_images(monkeypatch: pytest.MonkeyPatch):
    api = FakeGenerationAPI(default_status="completed")
    _use_fake_api(monkeypatch, api)

    result = runner.invoke(
        app,
        [
            "submit",
            "proj-1",
            "r1",
            "--kind",
            "reference_image",
            "--image-url",
            "https://img/1.png",
            "--prompt",
            "watercolor",
        ],
    )

    assert result.exit_code == 0
    assert api.submit_calls[0]["imageUrls"] == ["https://img/1.png"]
    assert api.submit_calls[0]["prompt"] == "watercolor"
    assert api.status_calls[0] == {"task_ids": ["task-1"]}


def test_submit_rejects_mismatched_image_urls(monkeypatch: pytest.MonkeyPatch):
    api = FakeGenerationAPI()
    _use_fake_api(monkeypatch, api)

    result = runner.invoke(
        app,
        ["submit", "proj-1", "r1", "r2", "--kind", "reference_image", "--image-url", "u1"],
    )

    assert result.exit_code == 2
    assert api.submit_calls == []


def test_submit_failure_exits_with_error(monkeypatch: pytest.MonkeyPatch):
    api = FakeGenerationAPI(submit_status_code=500)
    _use_fake_api(monkeypatch, api)

    result = runner.invoke(app, ["submit", "proj-1", "p1"])

    assert result.exit_code == 1
    assert "Submission failed" in result.output
    assert len(api.submit_calls) == 1


def test_watch_polls_refs_until_done(monkeypatch: pytest.MonkeyPatch):
    api = FakeGenerationAPI(default_status="completed")
    _use_fake_api(monkeypatch, api)

    result = runner.invoke(app, ["watch", "proj-1", "p7", "p8"])

    assert result.exit_code == 0
    assert "completed" in result.output
    assert api.status_calls[0] == {"prompt_ids": ["p7", "p8"]}


def test_watch_with_json_logs(monkeypatch: pytest.MonkeyPatch):
    api = FakeGenerationAPI(default_status="completed")
    _use_fake_api(monkeypatch, api)

    result = runner.invoke(app, ["watch", "proj-1", "p7", "--json-logs", "--verbose"])

    assert result.exit_code == 0
    assert api.status_calls[0] == {"prompt_ids": ["p7"]}
