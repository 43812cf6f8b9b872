# trajectory.py
# Minimum-jerk (5th order) point-to-point command for the equilibrium q0(t).

from dataclasses import dataclass
from typing import Tuple

import numpy as np


def min_jerk_traj(t, qi, qf, D, t0i=0.0) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Minimum-jerk blend from qi to qf, starting at t0i and lasting D seconds.

        tau  = (t - t0i) / D  in [0, 1]
        q0   = qi + (qf - qi) (10 tau^3 - 15 tau^4 + 6 tau^5)
        dq0  = (qf - qi) (30 tau^2 - 60 tau^3 + 30 tau^4) / D
        ddq0 = (qf - qi) (60 tau - 180 tau^2 + 120 tau^3) / D^2

    Before t0i the command rests at qi, after t0i + D at qf (zero velocity and
    acceleration on both sides).

    Returns: q0, dq0, ddq0 with the shape of qi.
    """
    if not D > 0.0:
        raise ValueError(f"movement duration D must be > 0, got {D}")
    qi = np.asarray(qi, dtype=float)
    qf = np.asarray(qf, dtype=float)
    if qi.shape != qf.shape:
        raise ValueError(f"qi and qf shapes differ: {qi.shape} vs {qf.shape}")

    if t <= t0i:
        return qi.copy(), np.zeros_like(qi), np.zeros_like(qi)
    if t >= t0i + D:
        return qf.copy(), np.zeros_like(qf), np.zeros_like(qf)

    tau = (t - t0i) / D
    dq = qf - qi
    q0 = qi + dq * (10 * tau**3 - 15 * tau**4 + 6 * tau**5)
    dq0 = dq * (30 * tau**2 - 60 * tau**3 + 30 * tau**4) / D
    ddq0 = dq * (60 * tau - 180 * tau**2 + 120 * tau**3) / D**2
    return q0, dq0, ddq0


@dataclass
class MinJerkTrajectory:
    qi: np.ndarray
    qf: np.ndarray
    D: float
    t0i: float = 0.0

    def __post_init__(self):
        self.qi = np.asarray(self.qi, dtype=float)
        self.qf = np.asarray(self.qf, dtype=float)
        if not self.D > 0.0:
            raise ValueError(f"movement duration D must be > 0, got {self.D}")

    @property
    def t_end(self):
        return self.t0i + self.D

    def __call__(self, t):
        return min_jerk_traj(t, self.qi, self.qf, self.D, self.t0i)
