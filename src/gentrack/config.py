"""
Tracker configuration read from the environment.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from gentrack.backends.base import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS
from gentrack.poller import DEFAULT_POLL_INTERVAL_SECONDS
from gentrack.status import HistoryNotify

ENV_PREFIX = "GENTRACK_"
DEFAULT_MAX_POLL_SECONDS = 60 * 60.0


def _env(name: str) -> str | None:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _optional_ceiling(raw: str | None, *, default: float | None) -> str | float | None:
    # Non-empty values are left to the model so each field keeps its own type.
    if raw is None:
        return default
    if raw.lower() in {"none", "off", "0"}:
        return None
    return raw


class TrackerConfig(BaseModel):
    """
    Settings shared by every tracker built through ``gentrack.track``.

    Attributes
    ----------
    base_url : str
        Backend API root.
    api_token : str | None
        Optional bearer token.
    poll_interval_seconds : float
        Delay between batch-status calls.
    max_poll_ticks : int | None
        Tick ceiling per polling session, ``None`` for no ceiling.
    max_poll_seconds : float | None
        Wall-clock ceiling per polling session, ``None`` for no ceiling.
    request_timeout_seconds : float
        Timeout of each backend HTTP call.
    history_notify : HistoryNotify
        Whether completions notify once per polling session or on every pass.
    """

    base_url: str = DEFAULT_BASE_URL
    api_token: str | None = None
    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL_SECONDS, gt=0)
    max_poll_ticks: int | None = Field(default=None, gt=0)
    max_poll_seconds: float | None = Field(default=DEFAULT_MAX_POLL_SECONDS, gt=0)
    request_timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    history_notify: HistoryNotify = HistoryNotify.ONCE_PER_SESSION

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> "TrackerConfig":
        """
        Build a config from ``GENTRACK_*`` environment variables.

        Parameters
        ----------
        dotenv : bool, optional
            Load a ``.env`` file first. Variables already set take precedence.

        Returns
        -------
        TrackerConfig
            Config with defaults for unset variables.
        """
        if dotenv:
            load_dotenv(override=False)
        values: dict[str, object] = {
            "max_poll_seconds": _optional_ceiling(
                _env("MAX_POLL_SECONDS"), default=DEFAULT_MAX_POLL_SECONDS
            ),
            "max_poll_ticks": _optional_ceiling(_env("MAX_POLL_TICKS"), default=None),
        }
        for field_name, env_name in (
            ("base_url", "BASE_URL"),
            ("api_token", "API_TOKEN"),
            ("poll_interval_seconds", "POLL_INTERVAL_SECONDS"),
            ("request_timeout_seconds", "REQUEST_TIMEOUT_SECONDS"),
            ("history_notify", "HISTORY_NOTIFY"),
        ):
            raw = _env(env_name)
            if raw is not None:
                values[field_name] = raw
        return cls.model_validate(values)
