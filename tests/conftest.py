import pytest

from elastic_arm.arm_dynamics import ElasticArmDynamics, DEFAULT_PARAMS


@pytest.fixture(scope="session")
def dyn():
    return ElasticArmDynamics(DEFAULT_PARAMS)
