import numpy as np
import pytest

from server import initialize_servers


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def servers():
    return initialize_servers(capabilities=[10, 20, 30, 40])


@pytest.fixture
def task_loads():
    return [3.0, 7.5, 1.25, 9.0, 4.0, 2.5, 6.0, 8.75, 5.5, 1.0]
