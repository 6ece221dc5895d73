from __future__ import annotations

from uuid import UUID, uuid4

import pytest

from fakes import RecordingPublisher


@pytest.fixture
def trainer_id() -> UUID:
    return uuid4()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()
