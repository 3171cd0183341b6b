# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the simulation parameters.

This module verifies the truncation policies, the Krylov options, the Observable class and the TDVPSimParams
class, in particular the default values, the validation of invalid arguments, the time grid and the
exponentiation step for real and imaginary time evolution.
"""

from __future__ import annotations

import numpy as np
import pytest

from mqt.tnsweep.core.data_structures.simulation_parameters import (
    DEFAULT_TOL,
    KrylovOptions,
    Observable,
    TDVPSimParams,
    TruncationPolicy,
    truncbelow,
    truncdim,
)
from mqt.tnsweep.core.libraries.operator_library import X, Z


def test_truncation_policy_defaults() -> None:
    """The default policy drops singular values below DEFAULT_TOL without a bond cap."""
    trunc = TruncationPolicy()
    assert trunc.threshold == DEFAULT_TOL
    assert trunc.max_bond_dim is None
    assert trunc.min_bond_dim == 1
    assert trunc.mode == "absolute"


def test_truncation_helpers() -> None:
    """truncbelow sets a threshold, truncdim only caps the bond dimension."""
    below = truncbelow(1e-6, max_bond_dim=10)
    assert below.threshold == 1e-6
    assert below.max_bond_dim == 10
    assert below.mode == "absolute"
    dim = truncdim(16)
    assert dim.threshold == 0.0
    assert dim.max_bond_dim == 16


def test_truncation_policy_validation() -> None:
    """Unknown modes and inconsistent bond dimension limits are rejected."""
    with pytest.raises(ValueError, match="Unknown truncation mode"):
        TruncationPolicy(mode="weight")
    with pytest.raises(ValueError, match="at least 1"):
        TruncationPolicy(min_bond_dim=0)
    with pytest.raises(ValueError, match="must not be smaller"):
        TruncationPolicy(max_bond_dim=2, min_bond_dim=4)


def test_krylov_options() -> None:
    """Krylov options have sensible defaults and reject non-positive integers."""
    options = KrylovOptions()
    assert options.krylovdim == 32
    assert options.maxiter == 100
    assert options.tol == 1e-12
    assert options.max_restarts == 100
    with pytest.raises(ValueError, match="must be positive"):
        KrylovOptions(krylovdim=0)
    with pytest.raises(ValueError, match="must be positive"):
        KrylovOptions(max_restarts=0)


@pytest.mark.parametrize("krylovdim", [1, 2])
def test_krylov_options_reject_small_subspaces(krylovdim: int) -> None:
    """Krylov subspaces of dimension one or two cannot advance the adaptive step and are rejected."""
    with pytest.raises(ValueError, match="at least 3"):
        KrylovOptions(krylovdim=krylovdim)
    assert KrylovOptions(krylovdim=3).krylovdim == 3


def test_observable_by_name_and_operator() -> None:
    """Observables are created from library names or operator instances."""
    by_name = Observable("z", 2)
    assert isinstance(by_name.operator, Z)
    assert by_name.site == 2
    assert by_name.results is None

    operator = X()
    by_operator = Observable(operator, 0)
    np.testing.assert_allclose(by_operator.operator.matrix, operator.matrix)
    assert by_operator.operator is not operator

    with pytest.raises(AssertionError):
        Observable("unknown", 0)


def test_sim_params_time_grid() -> None:
    """The time grid runs from 0 to the elapsed time in steps of dt."""
    observable = Observable("z", 0)
    sim_params = TDVPSimParams([observable], elapsed_time=1.0, dt=0.1)
    assert sim_params.num_steps == 10
    np.testing.assert_allclose(sim_params.times, np.linspace(0.0, 1.0, 11))
    observable.initialize(sim_params)
    assert observable.results is not None
    assert observable.results.shape == (11,)


def test_sim_params_defaults() -> None:
    """Truncation and Krylov options are created if not given."""
    sim_params = TDVPSimParams([], elapsed_time=0.5)
    assert sim_params.dt == 0.1
    assert sim_params.trunc.threshold == DEFAULT_TOL
    assert isinstance(sim_params.krylov, KrylovOptions)
    assert sim_params.verbose == 0
    assert not sim_params.imaginary_time
    assert not sim_params.show_progress


def test_sim_params_step() -> None:
    """Real time evolves with exp(-i dt H), imaginary time with exp(-dt H)."""
    real = TDVPSimParams([], elapsed_time=1.0, dt=0.05)
    assert real.step == pytest.approx(-0.05j)
    imaginary = TDVPSimParams([], elapsed_time=1.0, dt=0.05, imaginary_time=True)
    assert imaginary.step == pytest.approx(-0.05)


def test_sim_params_invalid_dt() -> None:
    """The time step must be positive."""
    with pytest.raises(ValueError, match="must be positive"):
        TDVPSimParams([], elapsed_time=1.0, dt=0.0)
