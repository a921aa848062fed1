"""Van der Pol oscillator, stiff for large mu.

    y0' = y1
    y1' = mu (1 - y0^2) y1 - y0

Written with jax.numpy so the Jacobian comes from forward-mode autodiff.
"""

from functools import partial

import jax
import jax.numpy as jnp
import numpy as np

from daejax.problem.jacobian import AutodiffJacobian
from daejax.problem.mass_matrix import IdentityMassMatrix
from daejax.problems.registry import Problem, register_problem


def van_der_pol_rhs(x, t, mu: float = 100.0):
    return jnp.array([x[1], mu * (1.0 - x[0] ** 2) * x[1] - x[0]])


@register_problem("van_der_pol", "Van der Pol oscillator (stiff ODE, autodiff Jacobian)")
def make_van_der_pol(mu: float = 100.0, t1: float = 200.0) -> Problem:
    fn = partial(van_der_pol_rhs, mu=mu)
    return Problem(
        name="van_der_pol",
        rhs=jax.jit(fn),
        mass=IdentityMassMatrix(2),
        x0=np.array([2.0, 0.0]),
        t1=t1,
        jacobian=AutodiffJacobian(fn),
        options={
            "initial_step": 1e-4,
            "max_step": t1 / 50,
            "abs_tolerance": 1e-6,
            "rel_tolerance": 1e-4,
        },
        names=["y", "dy"],
    )
