import numpy as np
import pytest

from elastic_arm.trajectory import MinJerkTrajectory, min_jerk_traj

CASES = [
    (np.array([0.0, 0.0]), np.array([1.0, 1.0]), 2.0, 1.0),
    (np.array([0.1, -0.4]), np.array([-1.3, 0.3]), 0.7, 0.0),
    (np.array([2.0]), np.array([5.0]), 3.5, 4.2),
]


@pytest.mark.parametrize("qi, qf, D, t0i", CASES)
def test_endpoints(qi, qf, D, t0i):
    q0, dq0, ddq0 = min_jerk_traj(t0i, qi, qf, D, t0i)
    np.testing.assert_array_equal(q0, qi)
    np.testing.assert_array_equal(dq0, np.zeros_like(qi))

    q0, dq0, ddq0 = min_jerk_traj(t0i + D, qi, qf, D, t0i)
    np.testing.assert_array_equal(q0, qf)
    np.testing.assert_array_equal(dq0, np.zeros_like(qf))


@pytest.mark.parametrize("qi, qf, D, t0i", CASES)
def test_rest_outside_movement(qi, qf, D, t0i):
    q0, dq0, _ = min_jerk_traj(t0i - 0.5, qi, qf, D, t0i)
    np.testing.assert_array_equal(q0, qi)
    np.testing.assert_array_equal(dq0, 0.0)
    q0, dq0, _ = min_jerk_traj(t0i + D + 0.5, qi, qf, D, t0i)
    np.testing.assert_array_equal(q0, qf)
    np.testing.assert_array_equal(dq0, 0.0)


@pytest.mark.parametrize("qi, qf, D, t0i", CASES)
def test_continuity_at_boundaries(qi, qf, D, t0i):
    eps = 1e-9
    for tb in (t0i, t0i + D):
        before = min_jerk_traj(tb - eps, qi, qf, D, t0i)
        after = min_jerk_traj(tb + eps, qi, qf, D, t0i)
        np.testing.assert_allclose(before[0], after[0], atol=1e-7)
        np.testing.assert_allclose(before[1], after[1], atol=1e-7)


def test_midpoint_and_peak_velocity():
    qi, qf, D = np.array([0.0, 0.0]), np.array([1.0, -2.0]), 2.0
    q0, dq0, ddq0 = min_jerk_traj(1.0, qi, qf, D, 0.0)
    np.testing.assert_allclose(q0, 0.5 * (qi + qf))
    np.testing.assert_allclose(dq0, 1.875 * (qf - qi) / D)
    np.testing.assert_allclose(ddq0, 0.0, atol=1e-12)


def test_velocity_and_acceleration_match_finite_differences():
    qi, qf, D, t0i = np.array([0.2, 0.0]), np.array([1.0, 1.5]), 1.5, 0.3
    h = 1e-6
    for t in np.linspace(t0i + 0.1, t0i + D - 0.1, 7):
        qp, dqp, _ = min_jerk_traj(t + h, qi, qf, D, t0i)
        qm, dqm, _ = min_jerk_traj(t - h, qi, qf, D, t0i)
        _, dq0, ddq0 = min_jerk_traj(t, qi, qf, D, t0i)
        np.testing.assert_allclose(dq0, (qp - qm) / (2 * h), atol=1e-6)
        np.testing.assert_allclose(ddq0, (dqp - dqm) / (2 * h), atol=1e-5)


def test_trajectory_object():
    traj = MinJerkTrajectory(qi=[0.0, 0.0], qf=[1.0, 1.0], D=2.0, t0i=1.0)
    assert traj.t_end == 3.0
    q0, dq0, _ = traj(0.0)
    np.testing.assert_array_equal(q0, [0.0, 0.0])
    np.testing.assert_array_equal(dq0, [0.0, 0.0])


def test_invalid_inputs():
    with pytest.raises(ValueError):
        min_jerk_traj(0.0, [0.0], [1.0], 0.0)
    with pytest.raises(ValueError):
        min_jerk_traj(0.0, [0.0, 0.0], [1.0], 1.0)
    with pytest.raises(ValueError):
        MinJerkTrajectory(qi=[0.0], qf=[1.0], D=-1.0)
