# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Library of model Hamiltonians.

This module builds the interaction trees of a few standard one-dimensional lattice models. Every model is a sum of
one-, two- and three-site terms added through the interaction API, so that the trees can be converted into MPOs
of any length with `InteractionTree.to_mpo`.

Conventions:
    ising_tree:             H = -J sum Z_i Z_i+1 - g sum X_i
    cluster_ising_tree:     H = -J sum Z_i-1 X_i Z_i+1 - g sum X_i
    heisenberg_tree:        H = J sum S_i . S_i+1 - h sum S^z_i
    spinless_fermion_tree:  H = -t sum (c^dag_i c_i+1 + h.c.) + V sum n_i n_i+1 - mu sum n_i
"""

from __future__ import annotations

import numpy as np

from ..data_structures.interaction_tree import InteractionTree
from ..methods.interactions import add_intr1, add_intr2, add_intr3
from .operator_library import Create, Destroy, Number, Sm, Sp, Sz, X, Y, Z


def ising_tree(length: int, J: float, g: float) -> InteractionTree:  # noqa: N803
    """Transverse-field Ising chain.

    Args:
        length: Number of sites.
        J: Coupling constant of the interaction.
        g: Strength of the transverse field.

    Returns:
        InteractionTree: The Hamiltonian.
    """
    tree = InteractionTree()
    for i in range(length - 1):
        add_intr2(tree, (Z(), Z()), (i, i + 1), -J, name=("Z", "Z"))
    for i in range(length):
        add_intr1(tree, X(), i, -g, name="X")
    return tree


def cluster_ising_tree(length: int, J: float, g: float) -> InteractionTree:  # noqa: N803
    """Cluster Ising chain with three-site interactions Z X Z.

    Returns:
        InteractionTree: The Hamiltonian.
    """
    tree = InteractionTree()
    for i in range(1, length - 1):
        add_intr3(tree, (Z(), X(), Z()), (i - 1, i, i + 1), -J, name=("Z", "X", "Z"))
    for i in range(length):
        add_intr1(tree, X(), i, -g, name="X")
    return tree


def heisenberg_tree(length: int, J: float = 1.0, h: float = 0.0, *, decomposed: bool = False) -> InteractionTree:  # noqa: N803
    """Spin-1/2 Heisenberg chain.

    With `decomposed`, every bond is added as a single term of two operators connected by an auxiliary bond
    carrying the three spin components, S_i . S_j = sum_a S^a_i S^a_j. Otherwise the exchange is added as the
    three terms S^z S^z and (S^+ S^- + S^- S^+) / 2.

    Returns:
        InteractionTree: The Hamiltonian.
    """
    tree = InteractionTree()
    if decomposed:
        spins = np.stack([X().matrix / 2, Y().matrix / 2, Z().matrix / 2])
        left = spins.transpose(1, 2, 0)  # (d, d, 3)
        right = spins  # (3, d, d)
        for i in range(length - 1):
            add_intr2(tree, (left, right), (i, i + 1), J, name=("S", "S"))
    else:
        for i in range(length - 1):
            add_intr2(tree, (Sz(), Sz()), (i, i + 1), J, name=("Sz", "Sz"))
            add_intr2(tree, (Sp(), Sm()), (i, i + 1), J / 2, name=("S+", "S-"))
            add_intr2(tree, (Sm(), Sp()), (i, i + 1), J / 2, name=("S-", "S+"))
    for i in range(length):
        add_intr1(tree, Sz(), i, -h, name="Sz")
    return tree


def spinless_fermion_tree(length: int, t: float = 1.0, V: float = 0.0, mu: float = 0.0) -> InteractionTree:  # noqa: N803
    """Spinless fermions with nearest-neighbour hopping and interaction.

    The Jordan-Wigner strings are generated by passing the parity operator Z to the two-site terms.

    Returns:
        InteractionTree: The Hamiltonian.
    """
    tree = InteractionTree()
    parity = Z().matrix
    for i in range(length - 1):
        add_intr2(tree, (Create(), Destroy()), (i, i + 1), -t, parity=parity, name=("c+", "c"))
        add_intr2(tree, (Create(), Destroy()), (i + 1, i), -t, parity=parity, name=("c+", "c"))
        add_intr2(tree, (Number(), Number()), (i, i + 1), V, name=("n", "n"))
    for i in range(length):
        add_intr1(tree, Number(), i, -mu, name="n")
    return tree
