# arm_dynamics.py
# Planar 2-DOF revolute arm, point masses M1, M2 at the link ends, no gravity.
# Derived once with SymPy, then lambdified:
#   * M(q), Minv(q)                 where M(q) ddq + b(q,dq) = tau
#   * b(q, dq)                      Coriolis / centrifugal bias
#   * Gamma(q)                      Christoffel symbols of the metric M, Gamma[i, j, k] (k upper)
#   * K(q, q0)                      covariant Hessian of the elastic potential
#   * Phi(q, q0), dPhi/dq           elastic potential around the moving equilibrium q0
#   * keypoints(q), J_ee(q)         base / elbow / hand positions, hand Jacobian

import sympy as sym
from sympy import Matrix, Rational, sin, cos
from sympy.physics.mechanics import dynamicsymbols
import numpy as np


DEFAULT_PARAMS = dict(
    M1=1.0, M2=1.0,
    L1=1.0, L2=1.0,
    k11=10.0, k12=0.0, k22=10.0,
)


class SingularConfigurationError(ValueError):
    """Mass matrix is (numerically) singular at the requested configuration."""


def christoffel_symbols(M, Minv, q, simplify=True):
    """
    Gamma[i][j][k] = 1/2 sum_m Minv[k,m] (dM[m,i]/dq_j + dM[m,j]/dq_i - dM[i,j]/dq_m)

    Returned as a nested list indexed [i][j][k]; k is the upper index.
    """
    n = len(q)
    Gamma = [[[0] * n for _ in range(n)] for _ in range(n)]
    for i in range(n):
        for j in range(n):
            for k in range(n):
                tmp = 0
                for m in range(n):
                    tmp += Rational(1, 2) * Minv[k, m] * (
                        M[m, i].diff(q[j]) + M[m, j].diff(q[i]) - M[i, j].diff(q[m])
                    )
                Gamma[i][j][k] = sym.simplify(tmp) if simplify else tmp
    return Gamma


def covariant_stiffness(Phi, Gamma, q):
    """K[i,j] = d2Phi/dq_i dq_j - sum_k Gamma[i][j][k] dPhi/dq_k"""
    n = len(q)
    grad = [Phi.diff(v) for v in q]
    hess = Matrix([[g_i.diff(v) for v in q] for g_i in grad])
    return Matrix(n, n, lambda i, j: hess[i, j] - sum(Gamma[i][j][k] * grad[k] for k in range(n)))


def _build_symbolic_exprs(verbose=False):
    # ===== time & generalized coords =====
    t = sym.symbols("t")
    q1, q2 = dynamicsymbols("q1 q2")
    dq1, dq2 = q1.diff(t), q2.diff(t)
    ddq1, ddq2 = dq1.diff(t), dq2.diff(t)

    # ===== parameters =====
    M1, M2, L1, L2 = sym.symbols("M1 M2 L1 L2", positive=True)
    k11, k12, k22 = sym.symbols("k11 k12 k22", real=True)

    # ===== point mass positions (link ends) =====
    x1 = L1 * cos(q1)
    y1 = L1 * sin(q1)

    x2 = L1 * cos(q1) + L2 * cos(q1 + q2)
    y2 = L1 * sin(q1) + L2 * sin(q1 + q2)

    p1 = Matrix([x1, y1])
    p2 = Matrix([x2, y2])
    v1 = p1.diff(t)
    v2 = p2.diff(t)

    # ===== Lagrangian == total kinetic energy =====
    if verbose:
        print("[derive] Lagrangian...")
    T = sym.simplify(Rational(1, 2) * M1 * v1.dot(v1) + Rational(1, 2) * M2 * v2.dot(v2))
    L = T

    # ===== Euler-Lagrange residuals: d/dt(dL/ddq) - dL/dq =====
    if verbose:
        print("[derive] Euler-Lagrange equations...")
    EL = Matrix([
        sym.simplify(L.diff(dq1).diff(t) - L.diff(q1)),
        sym.simplify(L.diff(dq2).diff(t) - L.diff(q2)),
    ])

    # ===== mass matrix: Hessian of L w.r.t. velocities =====
    dq_dyn = [dq1, dq2]
    M_dyn = Matrix(2, 2, lambda i, j: L.diff(dq_dyn[i]).diff(dq_dyn[j]))

    # ---- plain symbols (replace dynamicsymbols, highest derivative first) ----
    q1s, q2s, dq1s, dq2s, ddq1s, ddq2s = sym.symbols("q1 q2 dq1 dq2 ddq1 ddq2", real=True)
    to_plain = [(ddq1, ddq1s), (ddq2, ddq2s), (dq1, dq1s), (dq2, dq2s), (q1, q1s), (q2, q2s)]
    q = [q1s, q2s]

    if verbose:
        print("[derive] M, Minv, b...")
    M = sym.simplify(M_dyn.subs(to_plain))
    Minv = sym.simplify(M.inv())
    EL_s = EL.subs(to_plain)
    b = sym.simplify(EL_s.subs({ddq1s: 0, ddq2s: 0}))
    T_s = T.subs(to_plain)

    if verbose:
        print("[derive] Christoffel symbols...")
    Gamma = christoffel_symbols(M, Minv, q)

    # ===== elastic potential about the moving equilibrium (q01, q02) =====
    if verbose:
        print("[derive] stiffness matrix...")
    q01, q02 = sym.symbols("q01 q02", real=True)
    Kgain = Matrix([[k11, k12], [k12, k22]])
    e = Matrix([q01 - q1s, q02 - q2s])
    Phi = Rational(1, 2) * (e.T * Kgain * e)[0, 0]
    dPhi = Matrix([Phi.diff(v) for v in q])
    K = covariant_stiffness(Phi, Gamma, q)

    # ===== kinematics =====
    p1_s = p1.subs(to_plain)
    p2_s = p2.subs(to_plain)
    keypoints = Matrix([[0, 0], [p1_s[0], p1_s[1]], [p2_s[0], p2_s[1]]])
    J_ee = p2_s.jacobian(q)

    return {
        "p_syms": [M1, M2, L1, L2, k11, k12, k22],
        "q": q, "dq": [dq1s, dq2s], "ddq": [ddq1s, ddq2s], "q0": [q01, q02],
        "T": T_s, "EL": EL_s,
        "M": M, "Minv": Minv, "b": b,
        "Gamma": [Gamma[i][j][k] for i in range(2) for j in range(2) for k in range(2)],
        "Phi": Phi, "dPhi": dPhi, "K": K,
        "keypoints": keypoints, "J_ee": J_ee,
    }


_EXPRS = None


def _load_or_build(verbose=False):
    global _EXPRS
    if _EXPRS is None:
        _EXPRS = _build_symbolic_exprs(verbose=verbose)
    elif verbose:
        print("[derive] using cached symbolic model")
    return _EXPRS


def symbolic_exprs(verbose=False):
    """Symbolic expressions of the model (built once per process)."""
    return _load_or_build(verbose=verbose)


def _check_params(params_dict, p_syms):
    missing = [s.name for s in p_syms if s.name not in params_dict]
    if missing:
        raise ValueError(f"missing parameters: {missing}")
    bad = [s.name for s in p_syms if not np.isfinite(float(params_dict[s.name]))]
    if bad:
        raise ValueError(f"parameters must be finite: {bad}")
    for name in ("M1", "M2", "L1", "L2"):
        if not float(params_dict[name]) > 0.0:
            raise ValueError(f"{name} must be > 0, got {params_dict[name]}")
    k11, k12, k22 = (float(params_dict[n]) for n in ("k11", "k12", "k22"))
    if k11 < 0.0 or k22 < 0.0 or k11 * k22 - k12 ** 2 < -1e-12:
        raise ValueError(f"stiffness gains must form a PSD matrix, got k11={k11}, k12={k12}, k22={k22}")


class ElasticArmDynamics:
    """
    Numeric (numpy) dynamics of the elastic 2-DOF arm.
    Parameters are substituted into the symbolic model and lambdified once.
    params_dict keys match symbol names: "M1","M2","L1","L2","k11","k12","k22".
    All methods accept q, dq, q0, tau as array-like shape (2,).
    """

    def __init__(self, params_dict=None, dtype=float, det_tol=1e-9, verbose=False):
        if params_dict is None:
            params_dict = DEFAULT_PARAMS
        self.dtype = dtype
        self.det_tol = float(det_tol)

        exprs = _load_or_build(verbose=verbose)
        self._p_syms = exprs["p_syms"]
        _check_params(params_dict, self._p_syms)
        self.params = {s.name: dtype(params_dict[s.name]) for s in self._p_syms}
        self.Kgain = np.array([[self.params["k11"], self.params["k12"]],
                               [self.params["k12"], self.params["k22"]]], dtype=dtype)

        vals = {s: self.params[s.name] for s in self._p_syms}
        q, dq, ddq, q0 = exprs["q"], exprs["dq"], exprs["ddq"], exprs["q0"]

        # argument orders
        args_q = (*q,)
        args_qdq = (*q, *dq)
        args_el = (*q, *dq, *ddq)
        args_qq0 = (*q, *q0)

        if verbose:
            print("[derive] lambdify...")
        self._M_fun = sym.lambdify(args_q, exprs["M"].subs(vals), modules="numpy")
        self._Minv_fun = sym.lambdify(args_q, exprs["Minv"].subs(vals), modules="numpy")
        self._b_fun = sym.lambdify(args_qdq, exprs["b"].subs(vals), modules="numpy")
        self._T_fun = sym.lambdify(args_qdq, exprs["T"].subs(vals), modules="numpy")
        self._EL_fun = sym.lambdify(args_el, exprs["EL"].subs(vals), modules="numpy")
        self._Gamma_fun = sym.lambdify(args_q, [g.subs(vals) for g in exprs["Gamma"]], modules="numpy")
        self._K_fun = sym.lambdify(args_qq0, exprs["K"].subs(vals), modules="numpy")
        self._Phi_fun = sym.lambdify(args_qq0, exprs["Phi"].subs(vals), modules="numpy")
        self._dPhi_fun = sym.lambdify(args_qq0, exprs["dPhi"].subs(vals), modules="numpy")
        self._keypoints_fun = sym.lambdify(args_q, exprs["keypoints"].subs(vals), modules="numpy")
        self._JEE_fun = sym.lambdify(args_q, exprs["J_ee"].subs(vals), modules="numpy")

    def _vec(self, x):
        return np.asarray(x, dtype=self.dtype).reshape(2,)

    # ----- dynamics -----
    def M(self, q):
        q1v, q2v = self._vec(q)
        return np.array(self._M_fun(q1v, q2v), dtype=self.dtype).reshape(2, 2)

    def Minv(self, q):
        q1v, q2v = self._vec(q)
        return np.array(self._Minv_fun(q1v, q2v), dtype=self.dtype).reshape(2, 2)

    def b(self, q, dq):
        q1v, q2v = self._vec(q)
        dq1v, dq2v = self._vec(dq)
        return np.array(self._b_fun(q1v, q2v, dq1v, dq2v), dtype=self.dtype).reshape(2,)

    def Gamma(self, q):
        q1v, q2v = self._vec(q)
        return np.array(self._Gamma_fun(q1v, q2v), dtype=self.dtype).reshape(2, 2, 2)

    def kinetic_energy(self, q, dq):
        q1v, q2v = self._vec(q)
        dq1v, dq2v = self._vec(dq)
        return float(self._T_fun(q1v, q2v, dq1v, dq2v))

    def eom_residual(self, q, dq, ddq, tau):
        """d/dt(dL/ddq) - dL/dq - tau, evaluated from the raw Euler-Lagrange expressions."""
        q1v, q2v = self._vec(q)
        dq1v, dq2v = self._vec(dq)
        ddq1v, ddq2v = self._vec(ddq)
        el = np.array(self._EL_fun(q1v, q2v, dq1v, dq2v, ddq1v, ddq2v), dtype=self.dtype).reshape(2,)
        return el - self._vec(tau)

    def ddq(self, q, dq, tau):
        """
        Solve: M(q) ddq + b(q,dq) = tau  -> ddq = solve(M, tau - b)
        """
        Mmat = self.M(q)
        det = np.linalg.det(Mmat)
        if abs(det) < self.det_tol:
            raise SingularConfigurationError(
                f"singular configuration at q={np.asarray(q).tolist()}, det(M)={det:.3e}"
            )
        bvec = self.b(q, dq)
        return np.linalg.solve(Mmat, self._vec(tau) - bvec)

    # ----- elastic potential -----
    def potential(self, q, q0):
        q1v, q2v = self._vec(q)
        q01v, q02v = self._vec(q0)
        return float(self._Phi_fun(q1v, q2v, q01v, q02v))

    def grad_potential(self, q, q0):
        q1v, q2v = self._vec(q)
        q01v, q02v = self._vec(q0)
        return np.array(self._dPhi_fun(q1v, q2v, q01v, q02v), dtype=self.dtype).reshape(2,)

    def K(self, q, q0):
        q1v, q2v = self._vec(q)
        q01v, q02v = self._vec(q0)
        return np.array(self._K_fun(q1v, q2v, q01v, q02v), dtype=self.dtype).reshape(2, 2)

    # ----- kinematics -----
    def keypoints(self, q):
        """(3, 2): base, elbow (M1), hand (M2)."""
        q1v, q2v = self._vec(q)
        return np.array(self._keypoints_fun(q1v, q2v), dtype=self.dtype).reshape(3, 2)

    def ee(self, q):
        return self.keypoints(q)[2]

    def J_ee(self, q):
        q1v, q2v = self._vec(q)
        return np.array(self._JEE_fun(q1v, q2v), dtype=self.dtype).reshape(2, 2)
