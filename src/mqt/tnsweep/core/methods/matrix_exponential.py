# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Krylov subspace methods for the action of a matrix exponential.

This module computes exp(t A) x for a Hermitian linear map A, given only as a function acting on vectors, and a
complex step t. A Lanczos basis of the Krylov subspace is built around the current vector and the exponential of
the small tridiagonal projection is evaluated exactly. The step is split adaptively: a sub-step is accepted once
the a-posteriori error estimate of the Krylov approximation is small enough, and the Krylov space is rebuilt
around the new vector (a restart). The step length that is left after the maximal number of restarts is reported
back to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from scipy.linalg import eigh_tridiagonal

from ..data_structures.simulation_parameters import KrylovOptions

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

# Largest number of step halvings per restart
MAX_HALVINGS = 64


class ExponentiationInfo:
    """Convergence information of `exponentiate`.

    Attributes:
    converged (bool): True if the full step was integrated and every sub-step met the tolerance.
    residual (float): Step length left over, exactly 0.0 if the full step was integrated.
    normres (float): Error estimate of the last accepted sub-step.
    numiter (int): Number of restarts.
    numops (int): Number of applications of the linear map.
    """

    def __init__(
        self, residual: float, normres: float, numiter: int, numops: int, *, converged: bool | None = None
    ) -> None:
        """Initializes the information, `converged` follows from the residual unless given."""
        self.converged = residual == 0 if converged is None else converged
        self.residual = residual
        self.normres = normres
        self.numiter = numiter
        self.numops = numops


def _lanczos_iteration(
    op: Callable[[NDArray[np.complex128]], NDArray[np.complex128]],
    vstart: NDArray[np.complex128],
    numiter: int,
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.complex128]]:
    """Perform a "matrix free" Lanczos iteration.

    The iteration stops early if the Krylov space becomes invariant.

    Args:
        op: "matrix free" application of the Hermitian linear map.
        vstart: Starting vector of the iteration.
        numiter: Number of iterations (should be much smaller than the dimension of vstart).

    Returns:
        alpha: Diagonal real entries of the tridiagonal matrix.
        beta: Off-diagonal real entries of the tridiagonal matrix.
        V: `len(vstart) x numiter` matrix containing the orthonormal Lanczos vectors.
    """
    nrmv = np.linalg.norm(vstart)
    assert nrmv > 0
    vstart = vstart / nrmv

    alpha = np.zeros(numiter)
    beta = np.zeros(numiter - 1)

    lanczos_vectors = np.zeros((numiter, len(vstart)), dtype=complex)
    lanczos_vectors[0] = vstart

    for j in range(numiter - 1):
        w = op(lanczos_vectors[j])
        alpha[j] = np.vdot(w, lanczos_vectors[j]).real
        w = w - alpha[j] * lanczos_vectors[j] - (beta[j - 1] * lanczos_vectors[j - 1] if j > 0 else 0)
        beta[j] = np.linalg.norm(w)
        if beta[j] < 100 * len(vstart) * np.finfo(float).eps:
            # invariant subspace
            numiter = j + 1
            return alpha[:numiter], beta[: numiter - 1], lanczos_vectors[:numiter, :].T
        lanczos_vectors[j + 1] = w / beta[j]

    j = numiter - 1
    w = op(lanczos_vectors[j])
    alpha[j] = np.vdot(w, lanczos_vectors[j]).real
    return alpha, beta, lanczos_vectors.T


def _tridiagonal_eigh(
    alpha: NDArray[np.float64], beta: NDArray[np.float64]
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    if len(alpha) == 1:
        return alpha.copy(), np.ones((1, 1))
    return eigh_tridiagonal(alpha, beta)


def _phi1(z: NDArray[np.complex128]) -> NDArray[np.complex128]:
    """(exp(z) - 1) / z, evaluated by its Taylor expansion close to zero."""
    small = np.abs(z) < 1e-8
    safe = np.where(small, 1, z)
    return np.where(small, 1 + z / 2, np.expm1(safe) / safe)


def exponentiate(
    action: Callable[[NDArray[np.complex128]], NDArray[np.complex128]],
    t: complex,
    x: NDArray[np.complex128],
    options: KrylovOptions | None = None,
    *,
    accept_all: bool = False,
) -> tuple[NDArray[np.complex128], ExponentiationInfo]:
    """Compute exp(t A) x for a Hermitian map A with adaptive step control.

    Every restart builds a Lanczos basis of dimension `options.krylovdim` around the current vector. A sub-step
    tau, starting from the full remaining step length, is halved until the error estimate
    tau beta_m |e_m^T phi_1(tau T) e_1| drops below `options.tol * tau / |t|`, with phi_1(z) = (exp(z) - 1) / z.
    At most `options.maxiter` restarts are performed.

    Args:
        action: Application of A to a flat vector.
        t: Complex step.
        x: Flat starting vector.
        options: Krylov options, KrylovOptions() by default.
        accept_all: Integrate the whole step in a single sub-step regardless of the error estimate.

    Returns:
        tuple: The (approximately) integrated vector and the ExponentiationInfo. Its residual holds the
        real step length that was not integrated. The result is only flagged as converged if the whole step
        was integrated and every sub-step met the tolerance.
    """
    if options is None:
        options = KrylovOptions()
    y = np.array(x, dtype=np.complex128)
    total = abs(t)
    if total == 0 or np.linalg.norm(y) == 0:
        return y, ExponentiationInfo(0.0, 0.0, 0, 0)
    sign = t / total

    remaining = total
    normres = 0.0
    numops = 0
    numiter = 0
    within_tol = True
    while remaining > 0 and numiter < options.maxiter:
        numiter += 1
        nrm = np.linalg.norm(y)
        requested = min(options.krylovdim + 1, y.size)
        alpha, beta, basis = _lanczos_iteration(action, y, requested)
        numops += len(alpha)
        if len(alpha) < requested or requested == y.size:
            # the basis spans an invariant subspace, the projection is exact
            last_beta = 0.0
        else:
            last_beta = beta[-1]
            alpha, beta, basis = alpha[:-1], beta[:-1], basis[:, :-1]
        evals, evecs = _tridiagonal_eigh(alpha, beta)

        tau = remaining
        for halving in range(MAX_HALVINGS + 1):
            normres = tau * last_beta * abs(evecs[-1] @ (_phi1(sign * tau * evals) * evecs[0]))
            if normres <= options.tol * tau / total:
                break
            if accept_all or halving == MAX_HALVINGS:
                within_tol = False
                break
            tau /= 2
        coefficients = evecs @ (np.exp(sign * tau * evals) * evecs[0])
        y = nrm * (basis @ coefficients)
        remaining = remaining - tau if tau < remaining else 0.0

    info = ExponentiationInfo(remaining, normres, numiter, numops, converged=within_tol and remaining == 0)
    return y, info
