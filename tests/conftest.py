from __future__ import annotations

import pytest

from issue_tracker.issues.models import Actor
from tests.factories import DummyBackend


@pytest.fixture
def actor() -> Actor:
    return Actor(id="user-1", email="ana@planta.example")


@pytest.fixture
def backend() -> DummyBackend:
    return DummyBackend()
