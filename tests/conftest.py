"""Shared fixtures for Flood-Lab tests."""

import random

import pytest

from core.orchestrator import Orchestrator


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def orchestrator(rng):
    return Orchestrator(rng=rng)
