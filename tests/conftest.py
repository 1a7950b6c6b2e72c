"""Shared fixtures: seeded sources and a reusable small-profile tape."""

import pytest

from loantape.profiles import DEFAULT_CATALOG
from loantape.randomness import RandomSource
from loantape.synthesis import generate


@pytest.fixture
def rng():
    return RandomSource(20240101)


@pytest.fixture(scope="session")
def small_profile():
    return DEFAULT_CATALOG.get("small")


@pytest.fixture(scope="session")
def xlarge_profile():
    return DEFAULT_CATALOG.get("xlarge")


@pytest.fixture(scope="session")
def small_tape(small_profile):
    """2,500 seeded loans for the small profile, institution code SMA."""
    return generate(small_profile, 2500, "SMA", rng=RandomSource(7))


@pytest.fixture(scope="session")
def xlarge_tape(xlarge_profile):
    return generate(xlarge_profile, 2000, "GRE", rng=RandomSource(11))
