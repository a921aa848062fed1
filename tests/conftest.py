"""Pytest configuration for daejax tests

Pins JAX to the CPU backend and enables 64-bit floats before any test module
imports JAX, so results do not depend on the machine's accelerators.

Also provides shared fixtures:
- robertson: the bundled Robertson DAE
- linear_decay: x' = -k x with a known exact solution
"""

import os

import numpy as np
import pytest


def pytest_configure(config):
    """
    Pytest hook that runs before test collection.

    Ensures JAX is configured BEFORE any test modules are imported.
    """
    os.environ.setdefault("JAX_PLATFORMS", "cpu")

    import jax

    jax.config.update("jax_enable_x64", True)

    # Import daejax so its own precision setup runs first
    import daejax  # noqa: F401

    config.addinivalue_line("markers", "slow: long end-to-end integrations")


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def robertson():
    from daejax.problems import get_problem

    return get_problem("robertson")


@pytest.fixture
def linear_decay():
    """x' = -k x, x(0) = 1 for k = (1, 10); returns (rhs, jacobian, exact)."""
    k = np.array([1.0, 10.0])

    def rhs(x, t):
        return -k * x

    def jacobian(x, t):
        return np.diag(-k)

    def exact(t):
        return np.exp(-k * t)

    return rhs, jacobian, exact
