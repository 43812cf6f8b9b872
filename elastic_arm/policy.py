import numpy as np


def modal_damping(M, K, damping_ratio=1.0):
    """
    Damping matrix giving every mode of M e'' + D e' + K e = 0 the same ratio.

    With M = L L^T and L^-1 K L^-T = V diag(w) V^T:
        D = L V diag(2 zeta sqrt(w)) V^T L^T
    Negative stiffness directions (K away from its equilibrium) get no damping.
    """
    Lc = np.linalg.cholesky(M)
    Linv = np.linalg.inv(Lc)
    A = Linv @ K @ Linv.T
    w, V = np.linalg.eigh(0.5 * (A + A.T))
    w = np.clip(w, 0.0, None)
    return Lc @ V @ np.diag(2.0 * damping_ratio * np.sqrt(w)) @ V.T @ Lc.T


class ImpedancePolicy:
    """
    Elastic joint torque around the commanded equilibrium q0:

        tau = ff * (M(q) ddq0 + b(q, dq)) - dPhi/dq(q, q0) + D (dq0 - dq)

    -dPhi/dq = Kgain (q0 - q) is the spring force of the potential
    Phi = 1/2 (q0 - q)^T Kgain (q0 - q). With ff = 1 the tracking error
    e = q0 - q obeys M e'' + D e' + Kgain e = 0.

    damping=None designs D(q) each step from the covariant stiffness K(q, q0)
    and M(q) at the given damping_ratio; a (2, 2) array is used as is.
    """
    def __init__(self, dyn, damping=None, feedforward=True, damping_ratio=1.0):
        self.dyn = dyn
        if damping is not None:
            damping = np.asarray(damping, dtype=float)
            if damping.shape != (2, 2):
                raise ValueError(f"damping must be (2, 2), got {damping.shape}")
        if not damping_ratio >= 0.0:
            raise ValueError(f"damping_ratio must be >= 0, got {damping_ratio}")
        self.damping = damping
        self.damping_ratio = float(damping_ratio)
        self.feedforward = bool(feedforward)

    def damping_matrix(self, q, q0):
        if self.damping is not None:
            return self.damping
        return modal_damping(self.dyn.M(q), self.dyn.K(q, q0), self.damping_ratio)

    def __call__(self, q, dq, q0, dq0, ddq0=None):
        q = np.asarray(q, dtype=float)
        dq = np.asarray(dq, dtype=float)
        D = self.damping_matrix(q, q0)
        tau = -self.dyn.grad_potential(q, q0) + D @ (np.asarray(dq0, dtype=float) - dq)
        if self.feedforward:
            if ddq0 is None:
                ddq0 = np.zeros(2)
            tau = tau + self.dyn.M(q) @ np.asarray(ddq0, dtype=float) + self.dyn.b(q, dq)
        return tau
