from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
from tqdm import tqdm

from elastic_arm.arm_dynamics import ElasticArmDynamics, DEFAULT_PARAMS
from elastic_arm.policy import ImpedancePolicy
from elastic_arm.trajectory import MinJerkTrajectory

INTEGRATORS = ("euler", "semi_implicit", "rk4")


@dataclass
class ArmState:
    q: np.ndarray
    dq: np.ndarray
    ddq: np.ndarray = field(default_factory=lambda: np.zeros(2))


@dataclass
class SimConfig:
    qi: Tuple[float, float] = (0.0, 0.0)
    qf: Tuple[float, float] = (1.0, 1.0)
    D: float = 2.0       # movement duration
    t0i: float = 1.0     # movement onset
    T: float = 5.0
    dt: float = 1e-4
    integrator: str = "euler"

    @property
    def num_steps(self):
        return num_steps(self.T, self.dt)


def num_steps(T, dt):
    """Samples t_k = k dt for k = 0 .. round(T/dt), both ends included."""
    return int(round(T / dt)) + 1


def physics_step(dyn, q, dq, tau, dt, method="euler"):
    """
    One fixed step of M(q) ddq + b(q,dq) = tau, tau held over the step.
    Returns q_next, dq_next and ddq at (q, dq).
    """
    q = np.asarray(q, float); dq = np.asarray(dq, float)
    ddq = dyn.ddq(q, dq, tau)          # = solve(M, tau - b)

    if method == "euler":
        q_next = q + dt * dq
        dq_next = dq + dt * ddq
    elif method == "semi_implicit":
        dq_next = dq + dt * ddq
        q_next = q + dt * dq_next
    elif method == "rk4":
        def f(q_, dq_):
            return dq_, dyn.ddq(q_, dq_, tau)
        k1q, k1v = dq, ddq
        k2q, k2v = f(q + 0.5 * dt * k1q, dq + 0.5 * dt * k1v)
        k3q, k3v = f(q + 0.5 * dt * k2q, dq + 0.5 * dt * k2v)
        k4q, k4v = f(q + dt * k3q, dq + dt * k3v)
        q_next = q + dt / 6.0 * (k1q + 2 * k2q + 2 * k3q + k4q)
        dq_next = dq + dt / 6.0 * (k1v + 2 * k2v + 2 * k3v + k4v)
    else:
        raise ValueError(f"unknown integrator '{method}', expected one of {INTEGRATORS}")

    return q_next, dq_next, ddq


def simulate(dyn, policy, traj, T, dt, q_init=None, dq_init=None, method="euler",
             progress=False, verbose=False):
    """
    Fixed-step rollout over N = round(T/dt) + 1 samples t_k = k dt.
    Each step: command (q0, dq0, ddq0) -> torque -> ddq -> record -> integrate.
    The arm starts at rest at traj.qi unless q_init / dq_init are given.

    Returns a dict of arrays: t (N,), q, dq, ddq, tau, q0, dq0 (N, 2).
    """
    if not dt > 0.0:
        raise ValueError(f"dt must be > 0, got {dt}")
    if T < 0.0:
        raise ValueError(f"T must be >= 0, got {T}")
    if method not in INTEGRATORS:
        raise ValueError(f"unknown integrator '{method}', expected one of {INTEGRATORS}")

    N = num_steps(T, dt)
    if q_init is None:
        q_init = traj.qi
    if dq_init is None:
        dq_init = np.zeros(2)
    state = ArmState(q=np.asarray(q_init, float).reshape(2,).copy(),
                     dq=np.asarray(dq_init, float).reshape(2,).copy())

    log = {
        "t": np.arange(N) * dt,
        "q": np.zeros((N, 2)), "dq": np.zeros((N, 2)), "ddq": np.zeros((N, 2)),
        "tau": np.zeros((N, 2)), "q0": np.zeros((N, 2)), "dq0": np.zeros((N, 2)),
    }
    if verbose:
        print(f"[sim] {N} steps, dt={dt:g}, T={T:g}, integrator={method}")

    steps = range(N)
    if progress:
        steps = tqdm(steps, desc="Integrating")
    for k in steps:
        t = k * dt
        q0, dq0, ddq0 = traj(t)
        tau = policy(state.q, state.dq, q0, dq0, ddq0)
        q_next, dq_next, state.ddq = physics_step(dyn, state.q, state.dq, tau, dt, method)

        log["q"][k] = state.q
        log["dq"][k] = state.dq
        log["ddq"][k] = state.ddq
        log["tau"][k] = tau
        log["q0"][k] = q0
        log["dq0"][k] = dq0

        if not (np.isfinite(q_next).all() and np.isfinite(dq_next).all()):
            raise FloatingPointError(f"[sim] non-finite state after step {k} (t={t:g})")
        state = ArmState(q=q_next, dq=dq_next)

    if verbose:
        print(f"[sim] done: q(T)={log['q'][-1]}, dq(T)={log['dq'][-1]}")
    return log


def run(cfg=None, params=None, damping=None, feedforward=True, q_init=None,
        progress=False, verbose=False):
    """Build dynamics, command and policy from a SimConfig and roll out."""
    if cfg is None:
        cfg = SimConfig()
    dyn = ElasticArmDynamics(params if params is not None else DEFAULT_PARAMS, verbose=verbose)
    traj = MinJerkTrajectory(qi=cfg.qi, qf=cfg.qf, D=cfg.D, t0i=cfg.t0i)
    policy = ImpedancePolicy(dyn, damping=damping, feedforward=feedforward)
    return simulate(dyn, policy, traj, cfg.T, cfg.dt, q_init=q_init, method=cfg.integrator,
                    progress=progress, verbose=verbose)
