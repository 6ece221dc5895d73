from __future__ import annotations

import pytest
from pydantic import ValidationError

from trainer_scheduler.core.config import Settings


def test_defaults_enforce_availability() -> None:
    settings = Settings(_env_file=None)

    assert settings.enforce_trainer_availability is True
    assert settings.default_timezone == "UTC"
    assert settings.repository_timeout_seconds > 0


def test_debug_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, app_env="production", debug=True)


def test_debug_allowed_in_development() -> None:
    settings = Settings(_env_file=None, app_env="development", debug=True)
    assert settings.debug is True


def test_unknown_default_timezone_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, default_timezone="Nowhere/Special")


def test_non_positive_repository_timeout_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, repository_timeout_seconds=0)


def test_outbox_backoff_ceiling_must_cover_base() -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, outbox_base_backoff_seconds=60, outbox_max_backoff_seconds=30)


def test_worker_mode_is_case_insensitive() -> None:
    settings = Settings(_env_file=None, outbox_worker_mode=" LOOP ")
    assert settings.outbox_worker_mode == "loop"
