# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Adding interaction terms to an interaction tree.

This module turns user-facing interaction terms (operator matrices or tensors, sites, strength) into canonical
paths of an interaction tree. The pipeline of every term is:
  - Sort the operators by site with a compare-and-swap network. Each swap of two fermionic operators flips the
    sign of the strength.
  - Label the legs of operators obtained from a decomposition of a multi-site interaction.
  - Reduce terms whose operators share a site by multiplying the operators (Term3 -> Term2 -> Term1).
  - Walk the sites from 0 to the last operator, inserting identities, parity strings and the operators of the term
    while sharing already existing prefixes, and merge the strength into the terminal node.

For fermionic terms a parity operator (e.g. Z for spinless fermions) is passed explicitly. It is inserted on every
site strictly between the first two operators and fused into the second operator, which realizes the
Jordan-Wigner string of the term.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Union

import numpy as np

from ..data_structures.local_operator import LocalOperator, identity_operator, parity_operator
from ..libraries.operator_library import BaseOperator

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from ..data_structures.interaction_tree import InteractionTree

    OperatorLike = Union[NDArray[np.complex128], BaseOperator]


class Term1:
    """Single-site term.

    Attributes:
    ops (tuple[LocalOperator]): The operator.
    strength (complex): Strength of the term.
    value (Any): Optional payload stored in the terminal node.
    """

    arity = 1

    def __init__(self, a: LocalOperator, strength: complex, value: Any = None) -> None:  # noqa: ANN401
        """Initializes a single-site term."""
        self.ops = (a,)
        self.strength = strength
        self.value = value


class Term2:
    """Two-site term A B, see Term1."""

    arity = 2

    def __init__(self, a: LocalOperator, b: LocalOperator, strength: complex, value: Any = None) -> None:  # noqa: ANN401
        """Initializes a two-site term."""
        self.ops = (a, b)
        self.strength = strength
        self.value = value


class Term3:
    """Three-site term A B C, see Term1."""

    arity = 3

    def __init__(  # noqa: PLR0913, PLR0917
        self,
        a: LocalOperator,
        b: LocalOperator,
        c: LocalOperator,
        strength: complex,
        value: Any = None,  # noqa: ANN401
    ) -> None:
        """Initializes a three-site term."""
        self.ops = (a, b, c)
        self.strength = strength
        self.value = value


Term = Union[Term1, Term2, Term3]


def reduce_term(term: Term) -> Term:
    """Merge operators of a sorted term acting on the same site.

    A Term3 whose first or last two operators coincide becomes a Term2 holding their product, a Term2 with two
    operators on the same site becomes a Term1.

    Args:
        term: Term with operators sorted by site.

    Returns:
        Term: The reduced term.
    """
    if isinstance(term, Term3):
        a, b, c = term.ops
        if a.si == b.si:
            return reduce_term(Term2(a * b, c, term.strength, term.value))
        if b.si == c.si:
            return reduce_term(Term2(a, b * c, term.strength, term.value))
    elif isinstance(term, Term2):
        a, b = term.ops
        if a.si == b.si:
            return Term1(a * b, term.strength, term.value)
    return term


def _sort_operators(ops: list[LocalOperator], strength: complex, parity: NDArray[np.complex128] | None) -> complex:
    """Sort `ops` in place by site, flipping the sign of the strength for every fermionic swap.

    Returns:
        complex: The strength after sorting.
    """
    passes = [(0, 1)] if len(ops) == 2 else [(0, 1), (1, 2), (0, 1)]
    for i, j in passes:
        if ops[i].si > ops[j].si:
            ops[i], ops[j] = ops[j], ops[i]
            if parity is not None:
                strength = -strength
    return strength


def _unique_names(names: list[str]) -> list[str]:
    unique = list(names)
    for i in range(1, len(unique)):
        if unique[i] in unique[:i]:
            unique[i] += str(i + 1)
    return unique


def _assign_tags(ops: list[LocalOperator]) -> None:
    """Label the auxiliary legs of a sorted two- or three-site term.

    Plain operators are left untouched. Otherwise the first operator must carry an outgoing auxiliary leg, the last
    one an incoming auxiliary leg and a middle one both.

    Raises:
        ValueError: If the leg layout does not describe a decomposed interaction.
    """
    legs = [op.legs for op in ops]
    if all(leg == (1, 1) for leg in legs):
        return
    expected = [(1, 2)] + [(2, 2)] * (len(ops) - 2) + [(2, 1)]
    if legs != expected:
        msg = f"Operators with legs {legs} cannot be combined, expected plain operators or {expected}."
        raise ValueError(msg)
    names = _unique_names([op.name for op in ops])
    bonds = [f"{names[i]}<-{names[i + 1]}" for i in range(len(ops) - 1)]
    ops[0].tag = (("phys",), ("phys", bonds[0]))
    for i in range(1, len(ops) - 1):
        ops[i].tag = ((bonds[i - 1], "phys"), ("phys", bonds[i]))
    ops[-1].tag = ((bonds[-1], "phys"), ("phys",))


def _update_strength(tree: InteractionTree, parent: int, idx: int, strength: complex) -> None:
    """Add `strength` to the terminal node `idx` and drop its terminal role if the sum is exactly zero."""
    node = tree.node(idx)
    assert node.op is not None
    node.op.strength = strength if node.op.strength is None else node.op.strength + strength
    if node.op.strength != 0:
        return
    if node.children:
        node.op.strength = None
        node.value = None
    else:
        tree.remove_child(parent, idx)


def insert_term(tree: InteractionTree, term: Term, parity: NDArray[np.complex128] | None = None) -> None:
    """Insert a sorted, reduced term along its canonical path.

    The path visits every site from 0 up to the last operator of the term. A site carries the operator of the term
    acting on it, a parity placeholder if it lies strictly between the first two operators of a fermionic term, and
    an identity otherwise. Existing nodes are shared when operator and tag agree, in which case the stored tag is
    replaced. The last operator is matched by operator only and carries the strength.

    Args:
        tree: Tree to insert into.
        term: The term with strictly ascending sites.
        parity: Parity operator of fermionic terms, None for bosonic terms.

    Raises:
        ValueError: If the sites of the term are not strictly ascending.
    """
    ops = [op.copy() for op in term.ops]
    sites = [op.si for op in ops]
    if any(sites[i] >= sites[i + 1] for i in range(len(sites) - 1)):
        msg = f"Canonical insertion requires strictly ascending sites, got {sites}."
        raise ValueError(msg)
    if parity is not None and len(ops) > 1:
        ops[1] = ops[1].with_parity(parity)

    last = ops[-1]
    by_site = {op.si: op for op in ops[:-1]}
    d = ops[0].physical_dimension
    current = tree.ROOT
    for si in range(last.si):
        if si in by_site:
            op = by_site[si]
        elif parity is not None and len(ops) > 1 and ops[0].si < si < ops[1].si:
            op = parity_operator(parity, si)
        else:
            op = identity_operator(d, si)

        idx = tree.find_child(current, op)
        if idx is None:
            current = tree.add_child(current, op)
        else:
            current = idx
            node_op = tree.node(current).op
            assert node_op is not None
            if node_op.has_tag():
                node_op.tag = op.tag

    idx = tree.find_child(current, last, match_tag=False)
    if idx is None:
        last.strength = term.strength
        tree.add_child(current, last, term.value)
        return
    if term.value is not None:
        tree.node(idx).value = term.value
    _update_strength(tree, current, idx, term.strength)


def _local_operator(op: OperatorLike | LocalOperator, name: str, si: int, position: int, arity: int) -> LocalOperator:
    """Wrap a matrix or tensor into a LocalOperator.

    3-leg tensors carry an outgoing auxiliary leg at the first position and an incoming one at the last position.
    """
    if isinstance(op, LocalOperator):
        return LocalOperator(
            op.tensor, name, si, has_left=op.has_left, has_right=op.has_right, tag=op.tag
        )
    tensor = op.matrix if isinstance(op, BaseOperator) else np.asarray(op)
    if tensor.ndim == 3:
        if position == 0:
            return LocalOperator(tensor, name, si, has_right=True)
        if position == arity - 1:
            return LocalOperator(tensor, name, si, has_left=True)
    return LocalOperator(tensor, name, si)


def _prepare(
    ops: Sequence[OperatorLike | LocalOperator],
    sites: Sequence[int],
    name: Sequence[str],
    strength: complex,
    parity: NDArray[np.complex128] | None,
) -> tuple[list[LocalOperator], complex]:
    if not len(ops) == len(sites) == len(name):
        msg = f"Got {len(ops)} operators, {len(sites)} sites and {len(name)} names."
        raise ValueError(msg)
    local_ops = [
        _local_operator(op, str(n), si, position, len(ops))
        for position, (op, n, si) in enumerate(zip(ops, name, sites))
    ]
    strength = _sort_operators(local_ops, strength, parity)
    _assign_tags(local_ops)
    return local_ops, strength


def add_intr1(
    tree: InteractionTree,
    op: OperatorLike | LocalOperator,
    si: int,
    strength: complex,
    *,
    obs: bool = False,
    name: str = "A",
) -> None:
    """Add a single-site term `strength * op_si` to the tree.

    Args:
        tree: The interaction tree.
        op: Operator matrix.
        si: Site of the operator.
        strength: Strength of the term. Zero is a no-op.
        obs: Store (name, si) in the terminal node, used to identify observables.
        name: Name of the operator.
    """
    if strength == 0:
        return
    value = (str(name), si) if obs else None
    insert_term(tree, Term1(_local_operator(op, str(name), si, 0, 1), strength, value))


def add_intr2(
    tree: InteractionTree,
    ops: Sequence[OperatorLike | LocalOperator],
    sites: Sequence[int],
    strength: complex,
    *,
    obs: bool = False,
    parity: NDArray[np.complex128] | None = None,
    name: Sequence[str] = ("A", "B"),
) -> None:
    """Add a two-site term `strength * A_i B_j` to the tree.

    Args:
        tree: The interaction tree.
        ops: The two operators. A decomposed interaction passes tensors (d, d, chi) and (chi, d, d).
        sites: Sites of the operators, in any order.
        strength: Strength of the term. Zero is a no-op.
        obs: Store (concatenated names, *sites) in the terminal node.
        parity: Parity operator if the operators are fermionic.
        name: Names of the operators.
    """
    if strength == 0:
        return
    value = ("".join(map(str, name)), *sites) if obs else None
    local_ops, strength = _prepare(ops, sites, name, strength, parity)
    insert_term(tree, reduce_term(Term2(*local_ops, strength, value)), parity)


def add_intr3(
    tree: InteractionTree,
    ops: Sequence[OperatorLike | LocalOperator],
    sites: Sequence[int],
    strength: complex,
    *,
    obs: bool = False,
    parity: NDArray[np.complex128] | None = None,
    name: Sequence[str] = ("A", "B", "C"),
) -> None:
    """Add a three-site term `strength * A_i B_j C_k` to the tree.

    The operators are sorted by site. If two of them share a site they are multiplied and the term is inserted as a
    two-site (or single-site) term.

    Args:
        tree: The interaction tree.
        ops: The three operators. A decomposed interaction passes tensors (d, d, chi), (chi, d, d, chi') and
            (chi', d, d).
        sites: Sites of the operators, in any order.
        strength: Strength of the term. Zero is a no-op.
        obs: Store (concatenated names, *sites) in the terminal node.
        parity: Parity operator if the operators are fermionic.
        name: Names of the operators.
    """
    if strength == 0:
        return
    value = ("".join(map(str, name)), *sites) if obs else None
    local_ops, strength = _prepare(ops, sites, name, strength, parity)
    insert_term(tree, reduce_term(Term3(*local_ops, strength, value)), parity)


def add_interaction(
    tree: InteractionTree,
    ops: Sequence[OperatorLike | LocalOperator],
    sites: Sequence[int],
    strength: complex,
    *,
    obs: bool = False,
    parity: NDArray[np.complex128] | None = None,
    name: Sequence[str] | None = None,
) -> None:
    """Add a one-, two- or three-site term depending on the number of operators.

    Raises:
        ValueError: If the number of operators is not 1, 2 or 3.
    """
    if name is None:
        name = ("A", "B", "C")[: len(ops)]
    if len(ops) == 1:
        add_intr1(tree, ops[0], sites[0], strength, obs=obs, name=name[0])
    elif len(ops) == 2:
        add_intr2(tree, ops, sites, strength, obs=obs, parity=parity, name=name)
    elif len(ops) == 3:
        add_intr3(tree, ops, sites, strength, obs=obs, parity=parity, name=name)
    else:
        msg = f"Only one-, two- and three-site interactions are supported, got {len(ops)} operators."
        raise ValueError(msg)
