import numpy as np
import sympy as sym

from elastic_arm.arm_dynamics import ElasticArmDynamics, DEFAULT_PARAMS, symbolic_exprs
from elastic_arm.sim import SimConfig, run


def main():
    exprs = symbolic_exprs(verbose=True)
    sym.pprint(exprs["M"])
    sym.pprint(exprs["b"])

    dyn = ElasticArmDynamics(DEFAULT_PARAMS)

    q = np.array([0.3, -0.2])
    dq = np.array([0.1, 0.0])
    print("M:\n", dyn.M(q))
    print("Minv:\n", dyn.Minv(q))
    print("b:", dyn.b(q, dq))
    print("Gamma:\n", dyn.Gamma(q))
    print("K(q0=[0.5,0.5]):\n", dyn.K(q, [0.5, 0.5]))
    print("pEE:", dyn.ee(q))

    cfg = SimConfig()
    log = run(cfg, DEFAULT_PARAMS, progress=True, verbose=True)
    err = np.abs(log["q"][-1] - np.asarray(cfg.qf))
    print(f"|q(T) - qf| = {err}")


if __name__ == "__main__":
    main()
