# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for Time-Dependent Variational Principle (TDVP) methods.

This module contains unit tests for verifying various components of the two-site TDVP integrator,
including:

- Merging of neighbouring MPS and MPO tensors.
- Environment updates (left and right) and the projection of the Hamiltonian onto a site.
- The re-integration of leftover steps of the Krylov exponentiation.
- The local one- and two-site updates and the energy estimate derived from their norms.
- Single sweeps and symmetric two-site TDVP steps in real and imaginary time.

The tests ensure that:
- Sweeps with full bond dimension reproduce the exact time evolution exp(dt H).
- Real time evolution preserves norm and energy, truncation limits the bond dimension.
- Sweeps return one record per bond and leave the orthogonality center at the end of the chain.
"""

# ignore non-lowercase variable names for physics notation
# ruff: noqa: N806

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

import numpy as np
import pytest
from scipy.linalg import expm

from mqt.tnsweep.core.data_structures.environment import SparseEnvironment
from mqt.tnsweep.core.data_structures.networks import MPO, MPS
from mqt.tnsweep.core.data_structures.simulation_parameters import KrylovOptions, truncbelow, truncdim
from mqt.tnsweep.core.methods.matrix_exponential import ExponentiationInfo
from mqt.tnsweep.core.methods.tdvp import (
    lanczos_exp,
    merge_mpo_tensors,
    merge_mps_tensors,
    project_site,
    tdvp_update1,
    tdvp_update2,
    two_site_tdvp,
    two_site_tdvp_sweep,
    update_left_environment,
    update_right_environment,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

rng = np.random.default_rng()


def random_state_vector(length: int, seed: int) -> NDArray[np.complex128]:
    """Random normalized state vector of `length` qubits."""
    generator = np.random.default_rng(seed)
    vec = generator.standard_normal(2**length) + 1j * generator.standard_normal(2**length)
    return vec / np.linalg.norm(vec)


def mps_from_vector(vec: NDArray[np.complex128], length: int) -> MPS:
    """Exact MPS of a qubit state vector by successive SVDs, site 0 being the most significant index."""
    tensors = []
    rest = vec.reshape(1, -1)
    for _ in range(length - 1):
        chi = rest.shape[0]
        u_mat, s_vec, v_mat = np.linalg.svd(rest.reshape(chi * 2, -1), full_matrices=False)
        tensors.append(u_mat.reshape(chi, 2, -1).transpose(1, 0, 2))
        rest = np.diag(s_vec) @ v_mat
    tensors.append(rest.reshape(rest.shape[0], 2, 1).transpose(1, 0, 2))
    return MPS(length, tensors=tensors)


def ising_environment(length: int, seed: int, J: float = 1.0, g: float = 0.7) -> tuple[SparseEnvironment, NDArray]:
    """Environment of a random full-rank state and the Ising Hamiltonian.

    Returns:
        The environment and the dense Hamiltonian.
    """
    H = MPO()
    H.init_ising(length, J, g)
    state = mps_from_vector(random_state_vector(length, seed), length)
    return SparseEnvironment(state, H), H.to_matrix()


##############################################################################
# Contractions
##############################################################################


def test_merge_mps_tensors() -> None:
    """Merging contracts the common bond, the left site being the more significant physical index."""
    A0 = rng.random(size=(2, 3, 4)).astype(np.complex128)
    A1 = rng.random(size=(5, 4, 7)).astype(np.complex128)
    merged = merge_mps_tensors(A0, A1)
    assert merged.shape == (10, 3, 7)
    np.testing.assert_allclose(merged[1 * 5 + 3], A0[1] @ A1[3])


def test_merge_mpo_tensors() -> None:
    """Merging two MPO tensors of a two-site MPO yields its dense matrix."""
    A0 = rng.random(size=(2, 3, 4, 5)).astype(np.complex128)
    A1 = rng.random(size=(7, 8, 5, 9)).astype(np.complex128)
    assert merge_mpo_tensors(A0, A1).shape == (14, 24, 4, 9)

    H = MPO()
    H.init_ising(2, 1.0, 0.5)
    merged = merge_mpo_tensors(H.tensors[0], H.tensors[1])
    np.testing.assert_allclose(merged[:, :, 0, 0], H.to_matrix())


def test_environment_shapes() -> None:
    """Environment updates keep the index order (ket, mpo, bra)."""
    A = rng.random(size=(2, 3, 4)).astype(np.complex128)
    R = rng.random(size=(4, 5, 6)).astype(np.complex128)
    W = rng.random(size=(7, 2, 8, 5)).astype(np.complex128)
    B = rng.random(size=(7, 9, 6)).astype(np.complex128)
    assert update_right_environment(A, B, W, R).shape == (3, 8, 9)

    A = rng.random(size=(3, 4, 10)).astype(np.complex128)
    B = rng.random(size=(7, 6, 8)).astype(np.complex128)
    L_arr = rng.random(size=(4, 5, 6)).astype(np.complex128)
    W = rng.random(size=(7, 3, 5, 9)).astype(np.complex128)
    assert update_left_environment(A, B, W, L_arr).shape == (10, 9, 8)


def test_project_site_single_site() -> None:
    """On a single site with trivial environments the projection is the operator itself."""
    H = MPO()
    H.init_ising(1, 1.0, 0.5)
    ket = rng.random(size=(2, 1, 1)).astype(np.complex128)
    boundary = np.ones((1, 1, 1), dtype=complex)
    out = project_site(boundary, boundary, H.tensors[0], ket)
    np.testing.assert_allclose(out[:, 0, 0], H.to_matrix() @ ket[:, 0, 0])


##############################################################################
# Krylov re-integration
##############################################################################


def test_lanczos_exp_reintegrates_leftover() -> None:
    """Leftover step lengths are re-integrated along the same direction until nothing is left.

    A leftover step means the exponentiation ran out of restarts, so the result is reported as not converged.
    """
    steps = []

    def fake_exponentiate(
        _action: object, t: complex, x: NDArray[np.complex128], _options: object
    ) -> tuple[NDArray[np.complex128], ExponentiationInfo]:
        steps.append(t)
        residual = abs(t) / 2 if abs(t) > 0.25 else 0.0
        return x, ExponentiationInfo(residual, 0.0, 1, 3)

    with patch("mqt.tnsweep.core.methods.tdvp.exponentiate", side_effect=fake_exponentiate):
        _, info = lanczos_exp(lambda v: v, -1j, np.ones(2, dtype=complex), KrylovOptions())
    np.testing.assert_allclose(steps, [-1j, -0.5j, -0.25j])
    assert not info.converged
    assert info.numops == 9


def test_lanczos_exp_forces_leftover_after_max_restarts() -> None:
    """After the allowed number of re-invocations the leftover step is integrated at once without raising."""
    calls = []

    def fake_exponentiate(
        _action: object, t: complex, x: NDArray[np.complex128], _options: object, *, accept_all: bool = False
    ) -> tuple[NDArray[np.complex128], ExponentiationInfo]:
        calls.append((t, accept_all))
        if accept_all:
            return x, ExponentiationInfo(0.0, 1.0, 1, 1, converged=False)
        return x, ExponentiationInfo(abs(t) / 2, 1e-14, 1, 1)

    with patch("mqt.tnsweep.core.methods.tdvp.exponentiate", side_effect=fake_exponentiate):
        _, info = lanczos_exp(lambda v: v, 0.1, np.ones(2, dtype=complex), KrylovOptions(max_restarts=3))
    assert len(calls) == 5
    assert [accept_all for _, accept_all in calls] == [False, False, False, False, True]
    np.testing.assert_allclose([t for t, _ in calls], [0.1, 0.05, 0.025, 0.0125, 0.00625])
    assert not info.converged
    assert info.numops == 5


def test_lanczos_exp_raises_if_leftover_does_not_shrink() -> None:
    """A re-invocation that leaves the same step over is a fatal condition."""

    def fake_exponentiate(
        _action: object, t: complex, x: NDArray[np.complex128], _options: object
    ) -> tuple[NDArray[np.complex128], ExponentiationInfo]:
        return x, ExponentiationInfo(abs(t), 1.0, 1, 1)

    with patch("mqt.tnsweep.core.methods.tdvp.exponentiate", side_effect=fake_exponentiate) as mock_exp:
        with pytest.raises(RuntimeError, match="did not shrink"):
            lanczos_exp(lambda v: v, 0.1, np.ones(2, dtype=complex), KrylovOptions())
    assert mock_exp.call_count == 2


def test_lanczos_exp_small_restart_budget() -> None:
    """With the real exponentiation a tight restart budget still integrates the full step, flagged as not converged."""
    generator = np.random.default_rng(11)
    mat = generator.standard_normal((60, 60)) + 1j * generator.standard_normal((60, 60))
    A = (mat + mat.conj().T) / (2 * np.sqrt(60))
    x = generator.standard_normal(60) + 1j * generator.standard_normal(60)
    result, info = lanczos_exp(lambda v: A @ v, -2j, x, KrylovOptions(krylovdim=10, maxiter=2))
    np.testing.assert_allclose(result, expm(-2j * A) @ x, atol=1e-8)
    assert not info.converged
    assert info.numops > 20


##############################################################################
# Local updates
##############################################################################


def test_tdvp_update2_exact_on_two_sites() -> None:
    """On a two-site chain the two-site update is the exact evolution of the whole state."""
    env, H = ising_environment(2, seed=1)
    vec = env.state.to_vec()
    env.canonicalize(0, 1)
    merged, norm, info = tdvp_update2(
        env.proj_ham(0, 1), env.state.tensors[0], env.state.tensors[1], -0.3j, KrylovOptions()
    )
    assert info.converged
    np.testing.assert_allclose(np.linalg.norm(merged), 1.0)
    np.testing.assert_allclose(norm * merged.reshape(-1), expm(-0.3j * H) @ vec, atol=1e-12)


def test_tdvp_update1_energy_estimate() -> None:
    """The norm of a short backward update determines the energy relative to the shift e0."""
    env, _ = ising_environment(4, seed=2)
    energy = env.scalar()
    env.canonicalize(1, 1)
    tensor = env.state.tensors[1] / np.linalg.norm(env.state.tensors[1])
    e0, dt = 0.3, -1e-5
    _, norm, _ = tdvp_update1(env.proj_ham(1, 1, e0), tensor, -dt, KrylovOptions())
    assert e0 - np.real(np.log(norm) / dt) == pytest.approx(energy, abs=1e-4)


##############################################################################
# Sweeps
##############################################################################


def test_sweep_invalid_arguments() -> None:
    """Unknown directions, zero steps and single-site chains are rejected."""
    env, _ = ising_environment(3, seed=3)
    with pytest.raises(ValueError, match="direction"):
        two_site_tdvp_sweep(env, 0.1, "X")
    with pytest.raises(ValueError, match="non-zero"):
        two_site_tdvp_sweep(env, 0, "L")

    H = MPO()
    H.init_ising(1, 1.0, 1.0)
    with pytest.raises(ValueError, match="too short"):
        two_site_tdvp_sweep(SparseEnvironment(MPS(1), H), 0.1, "L")


@pytest.mark.parametrize("direction", ["L", "R"])
def test_sweep_records_and_center(direction: str) -> None:
    """A sweep returns one forward record per bond and one backward record per inner site."""
    length = 5
    env, _ = ising_environment(length, seed=4)
    info = two_site_tdvp_sweep(env, -0.05j, direction)
    assert [record.sites for record in info.forward] == [(i, i + 1) for i in range(length - 1)]
    assert [record.sites for record in info.backward] == [(i + 1,) for i in range(length - 2)]
    assert all(record.dt == -0.05j for record in info.forward)
    assert all(record.dt == 0.05j for record in info.backward)
    assert info.converged
    end = length - 1 if direction == "L" else 0
    assert env.state.center == [end, end]


def test_sweep_continues_without_convergence() -> None:
    """Local updates above the Krylov tolerance are flagged in the records while the sweep completes."""
    length = 4
    env, _ = ising_environment(length, seed=9)
    with patch("mqt.tnsweep.core.methods.matrix_exponential.MAX_HALVINGS", 0):
        info = two_site_tdvp_sweep(env, -0.5j, "L", krylov=KrylovOptions(krylovdim=3))
    assert not info.converged
    assert not all(record.lanczos.converged for record in info.forward)
    assert all(record is not None for record in info.forward + info.backward)
    assert env.state.center == [length - 1, length - 1]
    assert np.isfinite(env.state.norm())
    assert length - 1 in env.state.check_canonical_form()


def test_two_site_tdvp_imaginary_time_exact() -> None:
    """With full bond dimension, symmetric 2TDVP reproduces exp(dt H) in imaginary time."""
    length = 4
    env, H = ising_environment(length, seed=5)
    vec = env.state.to_vec()
    infos = two_site_tdvp(env, -0.1, trunc=truncdim(64))
    assert len(infos) == 2
    np.testing.assert_allclose(env.state.to_vec(), expm(-0.1 * H) @ vec, atol=1e-10)

    two_site_tdvp(env, -0.1, trunc=truncdim(64))
    np.testing.assert_allclose(env.state.to_vec(), expm(-0.2 * H) @ vec, atol=1e-10)


def test_two_site_tdvp_round_trip() -> None:
    """Evolving forward and backward in imaginary time restores the initial state."""
    length = 4
    env, _ = ising_environment(length, seed=6)
    vec = env.state.to_vec()
    two_site_tdvp(env, -0.2, trunc=truncdim(64))
    two_site_tdvp(env, 0.2, trunc=truncdim(64))
    np.testing.assert_allclose(env.state.to_vec(), vec, atol=1e-10)


def test_two_site_tdvp_real_time_exact_up_to_phase() -> None:
    """With full bond dimension, real time 2TDVP agrees with exp(-i t H) up to a global phase."""
    length = 4
    env, H = ising_environment(length, seed=7)
    vec = env.state.to_vec()
    for _ in range(3):
        two_site_tdvp(env, -0.1j, trunc=truncdim(64))
    exact = expm(-0.3j * H) @ vec
    result = env.state.to_vec()
    np.testing.assert_allclose(np.linalg.norm(result), np.linalg.norm(exact), atol=1e-10)
    np.testing.assert_allclose(abs(np.vdot(exact, result)), np.linalg.norm(exact) ** 2, atol=1e-10)


def test_two_site_tdvp_conserves_energy_and_truncates() -> None:
    """Real time evolution of a product state conserves the energy, truncation caps the bonds."""
    length = 6
    H = MPO()
    H.init_ising(length, 1.0, 0.9)
    state = MPS(length, state="x+")
    env = SparseEnvironment(state, H)
    energy = env.scalar()
    for _ in range(5):
        infos = two_site_tdvp(env, -0.05j, trunc=truncbelow(1e-10, max_bond_dim=4))
        assert all(info.bond.dim <= 4 for info in infos)
    assert state.get_max_bond() <= 4
    assert state.get_max_bond() > 1
    np.testing.assert_allclose(state.norm(), 1.0, atol=1e-8)
    np.testing.assert_allclose(env.scalar(), energy, atol=1e-5)


def test_two_site_tdvp_logging(caplog: pytest.LogCaptureFixture) -> None:
    """Verbose sweeps log a summary per sweep and a line per bond."""
    env, _ = ising_environment(3, seed=8)
    with caplog.at_level("INFO", logger="mqt.tnsweep.core.methods.tdvp"):
        two_site_tdvp(env, -0.1j, verbose=2)
    messages = [record.getMessage() for record in caplog.records]
    assert sum(message.startswith("TDVP sweep") for message in messages) == 2
    assert sum(message.startswith("Forward") for message in messages) == 4
    assert sum(message.startswith("Backward") for message in messages) == 2
