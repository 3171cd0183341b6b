# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Diagnostics of TDVP sweeps.

Every local update of a sweep produces a record holding the convergence information of the Krylov
exponentiation and the bond information (dimension, truncation error, entanglement entropy) of the bond it
touched. A sweep returns all records grouped into forward (two-site) and backward (one-site) updates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


class BondInfo:
    """Information about a single bond.

    Attributes:
    dim (int): Bond dimension.
    truncation_error (float): 2-norm of the discarded singular values.
    entropy (float): Von Neumann entanglement entropy of the normalized kept spectrum.
    """

    def __init__(self, dim: int, truncation_error: float = 0.0, entropy: float = 0.0) -> None:
        """Initializes the bond information."""
        self.dim = dim
        self.truncation_error = truncation_error
        self.entropy = entropy

    @classmethod
    def from_singular_values(cls, kept: NDArray[np.float64], discarded: NDArray[np.float64] | None = None) -> BondInfo:
        """Bond information from a (truncated) singular value spectrum.

        Args:
            kept: Kept singular values.
            discarded: Discarded singular values.

        Returns:
            BondInfo: The bond information.
        """
        error = 0.0 if discarded is None else float(np.sqrt(np.sum(np.abs(discarded) ** 2)))
        weights = np.abs(kept) ** 2
        total = np.sum(weights)
        entropy = 0.0
        if total > 0:
            p = weights[weights > 0] / total
            entropy = float(-np.sum(p * np.log(p)))
        return cls(len(kept), error, entropy)

    @classmethod
    def from_tensor(cls, tensor: NDArray[np.complex128], side: str) -> BondInfo:
        """Bond information of the left or right bond of an MPS tensor (sigma, chi_left, chi_right).

        Args:
            tensor: The MPS tensor.
            side: "left" or "right".

        Returns:
            BondInfo: The bond information without truncation.

        Raises:
            ValueError: If the side is unknown.
        """
        d, chi_left, chi_right = tensor.shape
        if side == "left":
            mat = tensor.transpose(1, 0, 2).reshape(chi_left, d * chi_right)
        elif side == "right":
            mat = tensor.reshape(d * chi_left, chi_right)
        else:
            msg = f"side must be 'left' or 'right', got {side!r}."
            raise ValueError(msg)
        s_vec = np.linalg.svd(mat, compute_uv=False)
        return cls.from_singular_values(s_vec)

    def merge(self, other: BondInfo) -> BondInfo:
        """Worst-case summary of two bonds.

        Returns:
            BondInfo: Maximum of the dimensions, truncation errors and entropies.
        """
        return BondInfo(
            max(self.dim, other.dim),
            max(self.truncation_error, other.truncation_error),
            max(self.entropy, other.entropy),
        )

    def __repr__(self) -> str:
        """Readable representation used in log messages."""
        return f"BondInfo(dim={self.dim}, truncation_error={self.truncation_error:.3e}, entropy={self.entropy:.4f})"


class LanczosInfo:
    """Convergence information of a local Krylov exponentiation.

    Attributes:
    converged (bool): Whether the integration reached the requested accuracy.
    normres (float): Error estimate of the last Krylov step.
    numiter (int): Number of restarts of the last exponentiation call.
    numops (int): Total number of operator applications.
    """

    def __init__(self, converged: bool, normres: float, numiter: int, numops: int) -> None:  # noqa: FBT001
        """Initializes the Lanczos information."""
        self.converged = converged
        self.normres = normres
        self.numiter = numiter
        self.numops = numops

    def __repr__(self) -> str:
        """Readable representation used in log messages."""
        return (
            f"LanczosInfo(converged={self.converged}, normres={self.normres:.3e}, "
            f"numiter={self.numiter}, numops={self.numops})"
        )


class TDVPInfo:
    """Record of a single local TDVP update.

    Attributes:
    sites (tuple[int, ...]): Sites updated, one or two.
    dt (complex): Exponentiation step of the update.
    lanczos (LanczosInfo): Krylov convergence information.
    bond (BondInfo): Information about the bond touched by the update.
    """

    def __init__(self, sites: tuple[int, ...], dt: complex, lanczos: LanczosInfo, bond: BondInfo) -> None:
        """Initializes the update record."""
        self.sites = sites
        self.dt = dt
        self.lanczos = lanczos
        self.bond = bond

    def __repr__(self) -> str:
        """Readable representation used in log messages."""
        return f"TDVPInfo(sites={self.sites}, dt={self.dt}, {self.lanczos!r}, {self.bond!r})"


class SweepInfo:
    """Records of a full sweep.

    Attributes:
    forward (list[TDVPInfo]): Two-site updates, one per bond.
    backward (list[TDVPInfo]): One-site backward updates.
    """

    def __init__(self, forward: list[TDVPInfo], backward: list[TDVPInfo]) -> None:
        """Initializes the sweep record."""
        self.forward = forward
        self.backward = backward

    @property
    def max_numops(self) -> int:
        """Largest number of operator applications of any local update."""
        return max((info.lanczos.numops for info in self.forward + self.backward), default=0)

    @property
    def converged(self) -> bool:
        """Whether every local update converged."""
        return all(info.lanczos.converged for info in self.forward + self.backward)

    @property
    def bond(self) -> BondInfo:
        """Merged information of all truncated bonds."""
        merged = BondInfo(0)
        for info in self.forward:
            merged = merged.merge(info.bond)
        return merged

    def __repr__(self) -> str:
        """Readable representation used in log messages."""
        return f"SweepInfo(forward={len(self.forward)}, backward={len(self.backward)}, max_numops={self.max_numops})"
