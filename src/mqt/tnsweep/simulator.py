# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""High-level simulator module.

This module implements the time evolution routine of an MPS under a Hamiltonian given as an MPO or as an
interaction tree. The state is evolved in place by repeated symmetric two-site TDVP sweeps, the observables of the
simulation parameters are measured at t = 0 and after every time step, and the diagnostics of every step are
returned. A tqdm progress bar reports the progress if requested.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tqdm import tqdm

from .core.data_structures.environment import SparseEnvironment
from .core.data_structures.interaction_tree import InteractionTree
from .core.methods.tdvp import two_site_tdvp

if TYPE_CHECKING:
    from .core.data_structures.diagnostics import SweepInfo
    from .core.data_structures.networks import MPO, MPS
    from .core.data_structures.simulation_parameters import TDVPSimParams

logger = logging.getLogger(__name__)


def _measure(state: MPS, sim_params: TDVPSimParams, time_index: int) -> None:
    for observable in sim_params.observables:
        assert observable.results is not None
        observable.results[time_index] = state.expect(observable)


def run(
    state: MPS,
    hamiltonian: MPO | InteractionTree,
    sim_params: TDVPSimParams,
) -> list[list[SweepInfo]]:
    """Evolve `state` in place with symmetric two-site TDVP sweeps.

    Args:
        state: The initial state, evolved in place.
        hamiltonian: The Hamiltonian as an MPO, or as an interaction tree converted to an MPO of the state length.
        sim_params: Simulation parameters with time step, truncation, Krylov options and observables.

    Returns:
        list[list[SweepInfo]]: The diagnostics of both sweeps of every time step.

    Raises:
        ValueError: If state and Hamiltonian length does not match.
    """
    if isinstance(hamiltonian, InteractionTree):
        hamiltonian = hamiltonian.to_mpo(state.length)
    if hamiltonian.length != state.length:
        msg = "State and Hamiltonian must have the same number of sites."
        raise ValueError(msg)

    for observable in sim_params.observables:
        observable.initialize(sim_params)
    _measure(state, sim_params, 0)

    env = SparseEnvironment(state, hamiltonian)
    infos = []
    for step in tqdm(
        range(1, sim_params.num_steps + 1), desc="Running TDVP", ncols=80, disable=not sim_params.show_progress
    ):
        info = two_site_tdvp(
            env,
            sim_params.step,
            trunc=sim_params.trunc,
            krylov=sim_params.krylov,
            verbose=sim_params.verbose,
        )
        infos.append(info)
        _measure(state, sim_params, step)
        if sim_params.verbose >= 1:
            logger.info("Step %d/%d: max bond %d", step, sim_params.num_steps, state.get_max_bond())
    return infos
