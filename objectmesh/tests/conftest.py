"""
Shared fixtures for the objectmesh test suite.
"""

from __future__ import annotations

import pytest

from objectmesh.core.config import TransferConfig
from objectmesh.observability.metrics import MetricsCollector
from objectmesh.storage.memory import InMemoryObjectStore
from objectmesh.tests.helpers import make_payload


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def collector() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def config() -> TransferConfig:
    """Small parts so that a few hundred bytes span several parts."""
    return TransferConfig(part_size=100, min_part_size=1, routines=2)


@pytest.fixture
def payload() -> bytes:
    return make_payload(250)
