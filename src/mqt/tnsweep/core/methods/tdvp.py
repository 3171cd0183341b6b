# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""2TDVP implementation with helper functions.

This module implements functions for performing time evolution on Matrix Product States (MPS)
using the two-site Time-Dependent Variational Principle (TDVP). It provides utilities for:
  - Merging neighbouring MPS and MPO tensors.
  - Constructing effective local operators through contractions with MPO tensors and environment blocks.
  - Integrating the local equations with a Krylov exponentiation whose step length is exactly the requested one.
  - Sweeping left to right or right to left over the chain with an energy shift that keeps the local
    exponentials well conditioned, and a symmetric integrator composed of both sweeps.

The state is evolved as psi -> exp(dt H) psi, i.e. dt = -1j * t for real time and dt = -tau for imaginary time.
Norm and phase changes are collected in the global coefficient of the MPS.

These methods are based on techniques described in Haegeman et al., Phys. Rev. B 94, 165116 (2016).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

from ..data_structures.diagnostics import BondInfo, LanczosInfo, SweepInfo, TDVPInfo
from ..data_structures.simulation_parameters import DEFAULT_TOL, KrylovOptions, TruncationPolicy, truncbelow
from .decompositions import split_two_site_tensor
from .matrix_exponential import exponentiate

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

    from ..data_structures.environment import ProjectedHamiltonian, SparseEnvironment

logger = logging.getLogger(__name__)


def merge_mps_tensors(
    left_tensor: NDArray[np.complex128], right_tensor: NDArray[np.complex128]
) -> NDArray[np.complex128]:
    """Merge two neighboring MPS tensors into one.

    The tensors are contracted over the common bond and the two physical dimensions are combined into one,
    the left site being the more significant index.

    Args:
        left_tensor (NDArray[np.complex128]): Left MPS tensor.
        right_tensor (NDArray[np.complex128]): Right MPS tensor.

    Returns:
        NDArray[np.complex128]: The merged MPS tensor.
    """
    merged_tensor = oe.contract("abc,dce->adbe", left_tensor, right_tensor)
    merged_shape = merged_tensor.shape
    return merged_tensor.reshape((merged_shape[0] * merged_shape[1], merged_shape[2], merged_shape[3]))


def merge_mpo_tensors(
    left_tensor: NDArray[np.complex128], right_tensor: NDArray[np.complex128]
) -> NDArray[np.complex128]:
    """Merge two neighboring MPO tensors into one.

    The function contracts left_tensor and right_tensor over their shared virtual bond and
    then reshapes the result to combine the physical indices appropriately.

    Args:
        left_tensor (NDArray[np.complex128]): Left MPO tensor.
        right_tensor (NDArray[np.complex128]): Right MPO tensor.

    Returns:
        NDArray[np.complex128]: The merged MPO tensor.
    """
    merged_tensor = oe.contract("acei,bdif->abcdef", left_tensor, right_tensor, optimize=True)
    dims = merged_tensor.shape
    return merged_tensor.reshape((dims[0] * dims[1], dims[2] * dims[3], dims[4], dims[5]))


def update_right_environment(
    ket: NDArray[np.complex128],
    bra: NDArray[np.complex128],
    op: NDArray[np.complex128],
    right_env: NDArray[np.complex128],
) -> NDArray[np.complex128]:
    r"""Perform a contraction step from right to left with an operator inserted.

    Args:
        ket (NDArray[np.complex128]): Ket tensor (sigma, left, right).
        bra (NDArray[np.complex128]): Bra tensor, to be conjugated.
        op (NDArray[np.complex128]): MPO tensor (sigma, sigma', left, right).
        right_env (NDArray[np.complex128]): Right operator block (ket, mpo, bra).

    Returns:
        NDArray[np.complex128]: The right operator block one site further left.
    """
    assert ket.ndim == 3
    assert bra.ndim == 3
    assert op.ndim == 4
    assert right_env.ndim == 3
    tensor = np.tensordot(ket, right_env, axes=1)
    tensor = np.tensordot(op, tensor, axes=((1, 3), (0, 2)))
    tensor = tensor.transpose((2, 1, 0, 3))
    return np.tensordot(tensor, bra.conj(), axes=((2, 3), (0, 2)))


def update_left_environment(
    ket: NDArray[np.complex128],
    bra: NDArray[np.complex128],
    op: NDArray[np.complex128],
    left_env: NDArray[np.complex128],
) -> NDArray[np.complex128]:
    r"""Perform a contraction step from left to right with an operator inserted.

    Args:
        ket (NDArray[np.complex128]): Ket tensor (sigma, left, right).
        bra (NDArray[np.complex128]): Bra tensor, to be conjugated.
        op (NDArray[np.complex128]): MPO tensor (sigma, sigma', left, right).
        left_env (NDArray[np.complex128]): Left operator block (ket, mpo, bra).

    Returns:
        NDArray[np.complex128]: The left operator block one site further right.
    """
    tensor = np.tensordot(left_env, bra.conj(), axes=(2, 1))
    tensor = np.tensordot(op, tensor, axes=((0, 2), (2, 1)))
    return np.tensordot(ket, tensor, axes=((0, 1), (0, 2)))


def project_site(
    left_env: NDArray[np.complex128],
    right_env: NDArray[np.complex128],
    op: NDArray[np.complex128],
    ket: NDArray[np.complex128],
) -> NDArray[np.complex128]:
    r"""Apply the local Hamiltonian operator on a tensor A.

    The function contracts the local MPS tensor A with the right environment R, then with the MPO tensor W,
    and finally with the left environment L, to yield the effective local Hamiltonian action.

    Args:
        left_env (NDArray[np.complex128]): Left operator block (3-index tensor).
        right_env (NDArray[np.complex128]): Right operator block (3-index tensor).
        op (NDArray[np.complex128]): MPO tensor (4-index tensor).
        ket (NDArray[np.complex128]): Local MPS tensor (3-index tensor).

    Returns:
        NDArray[np.complex128]: The resulting tensor after applying the local Hamiltonian.
    """
    tensor = np.tensordot(ket, right_env, axes=1)
    tensor = np.tensordot(op, tensor, axes=((1, 3), (0, 2)))
    tensor = np.tensordot(tensor, left_env, axes=((2, 1), (0, 1)))
    return tensor.transpose((0, 2, 1))


def lanczos_exp(
    action: Callable[[NDArray[np.complex128]], NDArray[np.complex128]],
    t: complex,
    x: NDArray[np.complex128],
    options: KrylovOptions,
) -> tuple[NDArray[np.complex128], LanczosInfo]:
    """Integrate exactly the step `t`, re-invoking the Krylov exponentiation on any leftover step length.

    Args:
        action: Application of the Hermitian map to a flat vector.
        t: Complex step.
        x: Flat starting vector.
        options: Krylov options.

    After `options.max_restarts` re-invocations the leftover step is integrated in a single sub-step. A leftover
    step or a sub-step above the tolerance is reported as not converged, the integrated step is always `t`.

    Returns:
        tuple: The integrated vector and the LanczosInfo with the accumulated number of operator applications.

    Raises:
        RuntimeError: If a re-invocation does not shrink the leftover step.
    """
    x, info = exponentiate(action, t, x, options)
    numops = info.numops
    converged = info.converged
    restarts = 0
    while info.residual != 0:
        residual = info.residual
        restarts += 1
        if restarts > options.max_restarts:
            logger.warning(
                "Krylov exponentiation left a step of %s after %d re-invocations, integrating it at once.",
                residual,
                options.max_restarts,
            )
            x, info = exponentiate(action, t / abs(t) * residual, x, options, accept_all=True)
        else:
            logger.debug("Re-integrating leftover step %s (re-invocation %d).", residual, restarts)
            x, info = exponentiate(action, t / abs(t) * residual, x, options)
        numops += info.numops
        converged = converged and info.converged
        if info.residual >= residual:
            msg = f"Krylov exponentiation did not shrink the leftover step {residual} (re-invocation {restarts})."
            raise RuntimeError(msg)
    return x, LanczosInfo(converged, info.normres, info.numiter, numops)


def _exponentiate_tensor(
    proj_ham: ProjectedHamiltonian, tensor: NDArray[np.complex128], dt: complex, options: KrylovOptions
) -> tuple[NDArray[np.complex128], float, LanczosInfo]:
    shape = tensor.shape
    evolved, info = lanczos_exp(
        lambda x: proj_ham.action(x.reshape(shape)).reshape(-1),
        dt,
        tensor.reshape(-1),
        options,
    )
    norm = float(np.linalg.norm(evolved))
    return (evolved / norm).reshape(shape), norm, info


def tdvp_update2(
    proj_ham: ProjectedHamiltonian,
    left_tensor: NDArray[np.complex128],
    right_tensor: NDArray[np.complex128],
    dt: complex,
    options: KrylovOptions,
) -> tuple[NDArray[np.complex128], float, LanczosInfo]:
    """Evolve two neighbouring MPS tensors with the projected two-site Hamiltonian.

    Returns:
        tuple: The unit-norm merged tensor, its norm before normalization and the LanczosInfo.
    """
    return _exponentiate_tensor(proj_ham, merge_mps_tensors(left_tensor, right_tensor), dt, options)


def tdvp_update1(
    proj_ham: ProjectedHamiltonian, tensor: NDArray[np.complex128], dt: complex, options: KrylovOptions
) -> tuple[NDArray[np.complex128], float, LanczosInfo]:
    """Evolve a single MPS tensor with the projected one-site Hamiltonian.

    Returns:
        tuple: The unit-norm tensor, its norm before normalization and the LanczosInfo.
    """
    return _exponentiate_tensor(proj_ham, tensor, dt, options)


def two_site_tdvp_sweep(
    env: SparseEnvironment,
    dt: complex,
    direction: str,
    *,
    trunc: TruncationPolicy | None = None,
    krylov: KrylovOptions | None = None,
    verbose: int = 0,
) -> SweepInfo:
    """Perform a single two-site TDVP sweep.

    Direction "L" sweeps from left to right, "R" from right to left. Every bond is evolved forward with `dt`
    by a two-site update and split with a truncated SVD. The factor carried on in sweep direction is evolved
    backward with `-dt` by a one-site update, except after the last bond.

    The local exponentials are shifted by the running energy estimate E0, which starts at <H> and is corrected
    by every backward update from the norm it produced. The removed factors exp(dt E0) and the norms of the
    local updates are multiplied into the coefficient of the state.

    Args:
        env: Environment <psi|H|psi> of the state to evolve.
        dt: Complex step, the state is evolved by exp(dt H).
        direction: "L" or "R".
        trunc: Truncation policy of the splits, truncbelow(DEFAULT_TOL) by default.
        krylov: Krylov options, KrylovOptions() by default.
        verbose: 2 or more logs every bond.

    Returns:
        SweepInfo: L-1 forward and L-2 backward records, indexed by bond.

    Raises:
        ValueError: If the direction is unknown, the step is zero or the chain has less than two sites.
    """
    if direction not in {"L", "R"}:
        msg = f"direction must be 'L' or 'R', got {direction!r}."
        raise ValueError(msg)
    num_sites = env.length
    if num_sites < 2:
        msg = "The chain is too short for a two-site update (2TDVP)."
        raise ValueError(msg)
    if dt == 0:
        msg = "The step dt must be non-zero."
        raise ValueError(msg)
    if trunc is None:
        trunc = truncbelow(DEFAULT_TOL)
    if krylov is None:
        krylov = KrylovOptions()

    psi = env.state
    forward: list[TDVPInfo] = [None] * (num_sites - 1)  # type: ignore[list-item]
    backward: list[TDVPInfo] = [None] * (num_sites - 2)  # type: ignore[list-item]
    e0 = env.scalar(normalize=True)

    if direction == "L":
        # bonds (si, si + 1), carried factor ends up on si + 1
        bonds = [(si, si + 1, si + 1) for si in range(num_sites - 1)]
        svd_distribution, side = "right", "right"
    else:
        # bonds (si - 1, si), carried factor ends up on si - 1
        bonds = [(si - 1, si, si - 1) for si in range(num_sites - 1, 0, -1)]
        svd_distribution, side = "left", "left"

    for step, (left_site, right_site, carried_site) in enumerate(bonds):
        env.canonicalize(left_site, right_site)
        merged, norm, lanczos = tdvp_update2(
            env.proj_ham(left_site, right_site, e0), psi.tensors[left_site], psi.tensors[right_site], dt, krylov
        )
        left_tensor, right_tensor, bond = split_two_site_tensor(
            merged,
            (psi.tensors[left_site].shape[0], psi.tensors[right_site].shape[0]),
            trunc,
            svd_distribution,
        )
        psi.tensors[left_site], psi.tensors[right_site] = left_tensor, right_tensor
        carried = psi.tensors[carried_site]
        psi.tensors[carried_site] = carried / np.linalg.norm(carried)
        psi.center = [carried_site, carried_site]
        psi.rmul(norm * np.exp(dt * e0))
        forward[left_site] = TDVPInfo((left_site, right_site), dt, lanczos, bond)
        if verbose >= 2:
            logger.info("Forward %d-%d: K = %d, %r", left_site, right_site, lanczos.numops, bond)

        if step < num_sites - 2:
            env.canonicalize(carried_site, carried_site)
            carried, norm, lanczos = tdvp_update1(
                env.proj_ham(carried_site, carried_site, e0), psi.tensors[carried_site], -dt, krylov
            )
            psi.tensors[carried_site] = carried
            psi.rmul(norm * np.exp(-np.real(dt) * e0))
            info = TDVPInfo((carried_site,), -dt, lanczos, BondInfo.from_tensor(carried, side))
            backward[left_site if direction == "L" else left_site - 1] = info
            # norm ~ exp(-dt * (<H> - E0))
            e0 -= float(np.real(np.log(norm) / dt))
            if verbose >= 2:
                logger.info("Backward %d: K = %d, %r", carried_site, lanczos.numops, info.bond)

    return SweepInfo(forward, backward)


def two_site_tdvp(
    env: SparseEnvironment,
    dt: complex,
    *,
    trunc: TruncationPolicy | None = None,
    krylov: KrylovOptions | None = None,
    verbose: int = 0,
) -> list[SweepInfo]:
    """Perform symmetric two-site TDVP integration.

    A left to right sweep with step dt / 2 is followed by a right to left sweep with step dt / 2.

    Args:
        env: Environment <psi|H|psi> of the state to evolve.
        dt: Complex step, the state is evolved by exp(dt H).
        trunc: Truncation policy of the splits.
        krylov: Krylov options.
        verbose: 1 or more logs a summary of every sweep, 2 or more every bond.

    Returns:
        list[SweepInfo]: The records of the left to right and the right to left sweep.
    """
    infos = []
    for direction in ("L", "R"):
        info = two_site_tdvp_sweep(env, dt / 2, direction, trunc=trunc, krylov=krylov, verbose=verbose)
        if verbose >= 1:
            backward_bond = BondInfo(0)
            for record in info.backward:
                backward_bond = backward_bond.merge(record.bond)
            logger.info(
                "TDVP sweep %s: forward K = %d, %r; backward K = %d, %r",
                ">>" if direction == "L" else "<<",
                max(record.lanczos.numops for record in info.forward),
                info.bond,
                max((record.lanczos.numops for record in info.backward), default=0),
                backward_bond,
            )
        infos.append(info)
    return infos
