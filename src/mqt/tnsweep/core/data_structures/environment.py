# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Environment of a three-layer network <psi|H|psi>.

The environment caches the left and right operator blocks (partial contractions of bra, MPO and ket) of an MPS
sandwiching an MPO. Left block k contains sites 0..k-1 with index order (ket, mpo, bra), right block k contains
sites k+1..L-1 with the same index order. Blocks are recomputed lazily: two validity pointers record up to which
site the left blocks and down to which site the right blocks are current, and every modification of the state
inside its orthogonality center moves them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ..methods.tdvp import merge_mpo_tensors, project_site, update_left_environment, update_right_environment

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from .networks import MPO, MPS


def _boundary_block(virtual_dim: int, mpo_dim: int) -> NDArray[np.complex128]:
    """Identity-like boundary block of shape (virtual_dim, mpo_dim, virtual_dim)."""
    block = np.zeros((virtual_dim, mpo_dim, virtual_dim), dtype=complex)
    for i in range(virtual_dim):
        for a in range(mpo_dim):
            block[i, a, i] = 1
    return block


class ProjectedHamiltonian:
    """Hamiltonian projected onto one site or two neighbouring sites.

    Attributes:
    sites (tuple[int, ...]): The sites of the projection.
    left_env (NDArray[np.complex128]): Left operator block.
    right_env (NDArray[np.complex128]): Right operator block.
    op (NDArray[np.complex128]): (Merged) MPO tensor.
    e0 (float): Energy shift subtracted from the action.
    """

    def __init__(
        self,
        sites: tuple[int, ...],
        left_env: NDArray[np.complex128],
        right_env: NDArray[np.complex128],
        op: NDArray[np.complex128],
        e0: float = 0.0,
    ) -> None:
        """Initializes the projected Hamiltonian."""
        self.sites = sites
        self.left_env = left_env
        self.right_env = right_env
        self.op = op
        self.e0 = e0

    def action(self, ket: NDArray[np.complex128]) -> NDArray[np.complex128]:
        """Apply H_eff - e0 to a (merged) MPS tensor."""
        return project_site(self.left_env, self.right_env, self.op, ket) - self.e0 * ket


class SparseEnvironment:
    """Cached environment of <psi|H|psi>.

    Attributes:
    state (MPS): The ket (and bra) state.
    hamiltonian (MPO): The operator.
    left_blocks (list): Left operator blocks, entries up to `lc` are current.
    right_blocks (list): Right operator blocks, entries from `rc` on are current.
    """

    def __init__(self, state: MPS, hamiltonian: MPO) -> None:
        """Initializes the environment with only the boundary blocks.

        Raises:
            ValueError: If state and operator length does not match.
        """
        if state.length != hamiltonian.length:
            msg = "The lengths of the state and the operator must match."
            raise ValueError(msg)
        self.state = state
        self.hamiltonian = hamiltonian
        num_sites = state.length
        self.left_blocks: list[NDArray[np.complex128] | None] = [None for _ in range(num_sites)]
        self.right_blocks: list[NDArray[np.complex128] | None] = [None for _ in range(num_sites)]
        self.left_blocks[0] = _boundary_block(state.tensors[0].shape[1], hamiltonian.tensors[0].shape[2])
        self.right_blocks[num_sites - 1] = _boundary_block(
            state.tensors[num_sites - 1].shape[2], hamiltonian.tensors[num_sites - 1].shape[3]
        )
        self.lc = 0
        self.rc = num_sites - 1

    @property
    def length(self) -> int:
        """Number of sites."""
        return self.state.length

    def canonicalize(self, si: int, sj: int) -> None:
        """Move the orthogonality center of the state into [si, sj] and update the blocks needed there.

        The sites inside the previous and the new orthogonality center may have changed, so blocks depending on
        them are invalidated. Afterwards the left block `si` and the right block `sj` are current.

        Args:
            si: Left end of the requested center.
            sj: Right end of the requested center.
        """
        old_left, old_right = self.state.center
        self.state.canonicalize(si, sj)
        new_left, new_right = self.state.center
        self.lc = min(self.lc, old_left, new_left)
        self.rc = max(self.rc, old_right, new_right)

        for site in range(self.lc, si):
            self.left_blocks[site + 1] = update_left_environment(
                self.state.tensors[site], self.state.tensors[site], self.hamiltonian.tensors[site], self.left_blocks[site]
            )
        self.lc = max(self.lc, si)
        for site in range(self.rc, sj, -1):
            self.right_blocks[site - 1] = update_right_environment(
                self.state.tensors[site], self.state.tensors[site], self.hamiltonian.tensors[site], self.right_blocks[site]
            )
        self.rc = min(self.rc, sj)

    def proj_ham(self, si: int, sj: int, e0: float = 0.0) -> ProjectedHamiltonian:
        """Projected Hamiltonian on site `si` (si == sj) or the two sites (si, si + 1).

        The blocks are taken as they are; call `canonicalize(si, sj)` first. Later calls of `canonicalize`
        invalidate the returned projection.

        Raises:
            ValueError: If the sites are neither equal nor neighbours.
        """
        if sj == si:
            op = self.hamiltonian.tensors[si]
            sites: tuple[int, ...] = (si,)
        elif sj == si + 1:
            op = merge_mpo_tensors(self.hamiltonian.tensors[si], self.hamiltonian.tensors[sj])
            sites = (si, sj)
        else:
            msg = f"Projections are only defined on one or two neighbouring sites, got ({si}, {sj})."
            raise ValueError(msg)
        assert si <= self.lc and sj >= self.rc, "Environment is not canonicalized at the requested sites."
        return ProjectedHamiltonian(sites, self.left_blocks[si], self.right_blocks[sj], op, e0)

    def scalar(self, *, normalize: bool = True) -> float:
        """Energy expectation value Re <psi|H|psi> of the tensors, the state coefficient is not included.

        Args:
            normalize: Divide by <psi|psi>.

        Returns:
            float: The (normalized) expectation value.
        """
        site = self.state.center[0]
        self.canonicalize(site, site)
        tensor = self.state.tensors[site]
        value = np.vdot(tensor, self.proj_ham(site, site).action(tensor))
        if normalize:
            value /= np.vdot(tensor, tensor)
        return float(value.real)
