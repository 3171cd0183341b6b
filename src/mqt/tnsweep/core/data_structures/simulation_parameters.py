# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Simulation Parameters for TDVP time evolution.

This module provides the configuration layer of the package. It defines
the truncation policy handed to the singular value decompositions of a sweep, the options of
the Krylov exponentiation, the Observable class for measurements, and the TDVPSimParams class
which bundles the settings of a full time evolution run (elapsed time, time step, truncation,
Krylov options, verbosity) and stores the measured results.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

import numpy as np

from mqt.tnsweep.core.libraries.operator_library import BaseOperator, OperatorLibrary

if TYPE_CHECKING:
    from numpy.typing import NDArray

DEFAULT_TOL = 1e-8


class TruncationPolicy:
    """Truncation policy for singular value decompositions.

    Attributes:
    threshold (float): Singular value threshold. Its meaning depends on `mode`.
    max_bond_dim (int | None): Hard cap on the number of kept singular values.
    min_bond_dim (int): Minimal number of kept singular values.
    mode (str): "absolute" drops all singular values below `threshold`,
        "relative" drops the smallest singular values as long as their relative discarded weight
        sum(s_discarded**2) / sum(s**2) stays below `threshold`.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_TOL,
        max_bond_dim: int | None = None,
        min_bond_dim: int = 1,
        mode: str = "absolute",
    ) -> None:
        """Initializes a truncation policy.

        Args:
            threshold: Truncation threshold, by default DEFAULT_TOL.
            max_bond_dim: Maximum kept bond dimension. None means unlimited.
            min_bond_dim: Minimum kept bond dimension, by default 1.
            mode: Either "absolute" or "relative".

        Raises:
            ValueError: If the mode is unknown or the bond dimension limits are inconsistent.
        """
        if mode not in {"absolute", "relative"}:
            msg = f"Unknown truncation mode {mode!r}, expected 'absolute' or 'relative'."
            raise ValueError(msg)
        if min_bond_dim < 1:
            msg = "min_bond_dim must be at least 1."
            raise ValueError(msg)
        if max_bond_dim is not None and max_bond_dim < min_bond_dim:
            msg = "max_bond_dim must not be smaller than min_bond_dim."
            raise ValueError(msg)
        self.threshold = threshold
        self.max_bond_dim = max_bond_dim
        self.min_bond_dim = min_bond_dim
        self.mode = mode

    def __repr__(self) -> str:
        """Readable representation used in log messages."""
        return (
            f"TruncationPolicy(threshold={self.threshold}, max_bond_dim={self.max_bond_dim}, "
            f"min_bond_dim={self.min_bond_dim}, mode={self.mode!r})"
        )


def truncbelow(tol: float = DEFAULT_TOL, max_bond_dim: int | None = None) -> TruncationPolicy:
    """Drop every singular value below `tol`.

    Returns:
        TruncationPolicy: The corresponding policy.
    """
    return TruncationPolicy(threshold=tol, max_bond_dim=max_bond_dim, mode="absolute")


def truncdim(dim: int) -> TruncationPolicy:
    """Keep at most `dim` singular values, dropping only exact zeros otherwise.

    Returns:
        TruncationPolicy: The corresponding policy.
    """
    return TruncationPolicy(threshold=0.0, max_bond_dim=dim, mode="absolute")


class KrylovOptions:
    """Options of the Krylov exponentiation.

    Attributes:
    krylovdim (int): Maximal dimension of the Krylov subspace built per restart.
    maxiter (int): Maximal number of restarts of a single exponentiation call.
    tol (float): Requested accuracy of the integrated vector.
    max_restarts (int): Maximal number of times the leftover step of an exponentiation is re-integrated
        adaptively, afterwards it is integrated in a single sub-step.
    """

    def __init__(self, krylovdim: int = 32, maxiter: int = 100, tol: float = 1e-12, max_restarts: int = 100) -> None:
        """Initializes the Krylov options.

        Raises:
            ValueError: If any of the integer options is not positive or the Krylov dimension is below 3.
        """
        if krylovdim < 1 or maxiter < 1 or max_restarts < 1:
            msg = "krylovdim, maxiter and max_restarts must be positive."
            raise ValueError(msg)
        if krylovdim < 3:
            # smaller subspaces only accept sub-steps of the order of the tolerance
            msg = f"krylovdim must be at least 3, got {krylovdim}."
            raise ValueError(msg)
        self.krylovdim = krylovdim
        self.maxiter = maxiter
        self.tol = tol
        self.max_restarts = max_restarts

    def __repr__(self) -> str:
        """Readable representation used in log messages."""
        return (
            f"KrylovOptions(krylovdim={self.krylovdim}, maxiter={self.maxiter}, tol={self.tol}, "
            f"max_restarts={self.max_restarts})"
        )


class Observable:
    """Observable class.

    A single-site observable measured during a time evolution.

    Attributes:
    ----------
    operator : BaseOperator
        The local operator acting as the observable.
    site : int
        The site on which the observable is measured.
    results : NDArray[np.float64] | None
        The expectation values after every time step, initialized to None.
    """

    def __init__(self, operator: BaseOperator | str, site: int) -> None:
        """Initializes an Observable instance.

        Parameters
        ----------
        operator :
            The operator acting as the observable, or its name in the OperatorLibrary.
        site :
            The site index on which this observable is measured.

        Raises:
        ------
        AssertionError
            If the provided name is not a valid attribute in the OperatorLibrary.
        """
        if isinstance(operator, str):
            assert hasattr(OperatorLibrary, operator), f"Observable {operator} not found in OperatorLibrary."
            operator = getattr(OperatorLibrary, operator)()
        self.operator = copy.deepcopy(operator)
        self.site = site
        self.results: NDArray[np.float64] | None = None

    def initialize(self, sim_params: TDVPSimParams) -> None:
        """Allocate the result array for a simulation run."""
        self.results = np.empty(len(sim_params.times), dtype=np.float64)


class TDVPSimParams:
    """TDVP Simulation Parameters.

    A class to represent the parameters of a time evolution with symmetric two-site TDVP sweeps.

    Attributes:
    -----------
    observables :
        A list of observables to be tracked during the simulation.
    elapsed_time :
        The total time for the simulation.
    dt :
        The time step for the simulation (default is 0.1).
    times :
        An array of time points from 0 to elapsed_time with step dt.
    imaginary_time :
        If True, evolves with exp(-dt H) instead of exp(-i dt H).
    trunc :
        Truncation policy of the two-site decompositions.
    krylov :
        Options of the Krylov exponentiation.
    verbose :
        Diagnostic level forwarded to the sweeps.
    show_progress :
        Display a tqdm progress bar.
    """

    def __init__(
        self,
        observables: list[Observable],
        elapsed_time: float,
        dt: float = 0.1,
        trunc: TruncationPolicy | None = None,
        krylov: KrylovOptions | None = None,
        verbose: int = 0,
        *,
        imaginary_time: bool = False,
        show_progress: bool = False,
    ) -> None:
        """TDVP simulation parameters initialization.

        Parameters
        ----------
        observables :
            List of observables to measure during the simulation.
        elapsed_time :
            Total simulation time.
        dt :
            Time step interval, by default 0.1.
        trunc :
            Truncation policy, by default truncbelow(DEFAULT_TOL).
        krylov :
            Krylov options, by default KrylovOptions().
        verbose :
            Diagnostic level of the sweeps, by default 0.
        imaginary_time :
            Evolve in imaginary time, by default False.
        show_progress :
            Display a progress bar, by default False.

        Raises:
            ValueError: If dt is not positive.
        """
        if dt <= 0:
            msg = "The time step dt must be positive."
            raise ValueError(msg)
        self.observables = observables
        self.elapsed_time = elapsed_time
        self.dt = dt
        num_steps = round(elapsed_time / dt)
        self.times = np.arange(num_steps + 1) * dt
        self.trunc = trunc if trunc is not None else truncbelow(DEFAULT_TOL)
        self.krylov = krylov if krylov is not None else KrylovOptions()
        self.verbose = verbose
        self.imaginary_time = imaginary_time
        self.show_progress = show_progress

    @property
    def num_steps(self) -> int:
        """Number of time steps."""
        return len(self.times) - 1

    @property
    def step(self) -> complex:
        """Exponentiation step handed to the sweeps, i.e. exp(step * H) per time step."""
        if self.imaginary_time:
            return complex(-self.dt)
        return -1j * self.dt
