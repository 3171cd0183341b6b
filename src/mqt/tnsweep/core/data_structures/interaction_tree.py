# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Interaction Tree.

This module implements the interaction tree, a shared-prefix representation of a sum of few-site operator terms.
Every path from the root to a terminal node enumerates, site by site starting at site 0, the operator acting on
each site up to the rightmost site of a term: identities before and between the operators, parity strings between
fermionic operators, and the operators of the term itself. The terminal node carries the strength of the term.
Terms sharing the same operators on their leftmost sites share the corresponding nodes.

Nodes are stored in an arena (a flat list) and refer to each other through indices. A parent owns the ordered list
of the indices of its children. Slots of deleted nodes are recycled.

The tree is converted into a Matrix Product Operator (MPO) by reading it as a finite automaton: the virtual states
on the bond to the right of site k are the nodes on site k that still lead to a terminal node, plus one "finished"
state for terms that ended on a site <= k.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np

from .networks import MPO

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import NDArray

    from .local_operator import LocalOperator


class InteractionTreeNode:
    """Node of an interaction tree.

    Attributes:
    op (LocalOperator | None): Operator occupying the node, None for the root.
    parent (int | None): Arena index of the parent, None for the root.
    children (list[int]): Ordered arena indices of the children.
    value (Any): Optional payload of terminal nodes, e.g. observable metadata.
    """

    def __init__(self, op: LocalOperator | None, parent: int | None = None, value: Any = None) -> None:  # noqa: ANN401
        """Initializes a tree node."""
        self.op = op
        self.parent = parent
        self.children: list[int] = []
        self.value = value

    @property
    def is_terminal(self) -> bool:
        """A node is terminal if it carries the strength of a term."""
        return self.op is not None and self.op.strength is not None

    @property
    def si(self) -> int:
        """Site of the node, -1 for the root."""
        return -1 if self.op is None else self.op.si

    def __repr__(self) -> str:
        """Short representation."""
        return f"InteractionTreeNode({self.op!r}, children={self.children})"


class InteractionTree:
    """Interaction tree stored as an arena of nodes.

    Attributes:
    nodes (list[InteractionTreeNode | None]): The arena. Index 0 is the root, freed slots are None.
    """

    ROOT = 0

    def __init__(self) -> None:
        """Initializes an empty tree holding only the root."""
        self.nodes: list[InteractionTreeNode | None] = [InteractionTreeNode(None)]
        self._free: list[int] = []

    @property
    def root(self) -> InteractionTreeNode:
        """The root node."""
        return self.node(self.ROOT)

    def node(self, idx: int) -> InteractionTreeNode:
        """Node stored at arena index `idx`.

        Raises:
            IndexError: If the slot is empty.
        """
        node = self.nodes[idx]
        if node is None:
            msg = f"Arena slot {idx} is empty."
            raise IndexError(msg)
        return node

    def children_of(self, idx: int) -> list[int]:
        """Arena indices of the children of node `idx`."""
        return self.node(idx).children

    def add_child(self, parent: int, op: LocalOperator, value: Any = None) -> int:  # noqa: ANN401
        """Append a new child carrying `op` to node `parent`.

        Returns:
            int: Arena index of the new child.

        Raises:
            ValueError: If the child does not act on the site right after its parent.
        """
        parent_node = self.node(parent)
        if op.si != parent_node.si + 1:
            msg = f"A child of a node on site {parent_node.si} must act on site {parent_node.si + 1}, got {op.si}."
            raise ValueError(msg)
        child = InteractionTreeNode(op, parent=parent, value=value)
        if self._free:
            idx = self._free.pop()
            self.nodes[idx] = child
        else:
            idx = len(self.nodes)
            self.nodes.append(child)
        parent_node.children.append(idx)
        return idx

    def find_child(self, parent: int, op: LocalOperator, *, match_tag: bool = True) -> int | None:
        """Search the children of `parent` for a node holding an operator equal to `op`.

        With `match_tag`, two operators that both carry tags must also carry equal tags.

        Returns:
            int | None: Arena index of the first match, None if there is none.
        """
        for idx in self.node(parent).children:
            candidate = self.node(idx).op
            assert candidate is not None
            if candidate != op:
                continue
            if match_tag and candidate.has_tag() and op.has_tag() and candidate.tag != op.tag:
                continue
            return idx
        return None

    def _free_subtree(self, idx: int) -> None:
        stack = [idx]
        while stack:
            current = stack.pop()
            stack.extend(self.node(current).children)
            self.nodes[current] = None
            self._free.append(current)

    def remove_child(self, parent: int, child: int) -> None:
        """Delete `child` and its subtree from the children of `parent`, then prune dangling ancestors."""
        self.node(parent).children.remove(child)
        self._free_subtree(child)
        self.prune(parent)

    def prune(self, idx: int) -> None:
        """Remove `idx` and its ancestors as long as they have neither children nor a terminal role."""
        while idx != self.ROOT:
            node = self.node(idx)
            if node.children or node.is_terminal:
                return
            parent = node.parent
            assert parent is not None
            self.node(parent).children.remove(idx)
            self.nodes[idx] = None
            self._free.append(idx)
            idx = parent

    def is_empty(self) -> bool:
        """True if the root has no descendant."""
        return not self.root.children

    def __len__(self) -> int:
        """Number of nodes without the root."""
        return sum(node is not None for node in self.nodes) - 1

    def depth(self) -> int:
        """Number of sites spanned by the deepest path."""
        sites = [node.si for node in self.nodes if node is not None]
        return max(sites) + 1

    def terminals(self) -> Iterator[tuple[list[LocalOperator], complex, Any]]:
        """Iterate all terms stored in the tree.

        Yields:
            tuple: (operators along the path from site 0, strength, value) for every terminal node.
        """
        stack: list[tuple[int, list[LocalOperator]]] = [(self.ROOT, [])]
        while stack:
            idx, path = stack.pop()
            node = self.node(idx)
            if node.op is not None:
                path = [*path, node.op]
                if node.is_terminal:
                    assert node.op.strength is not None
                    yield path, node.op.strength, node.value
            stack.extend((child, path) for child in reversed(node.children))

    @property
    def num_terms(self) -> int:
        """Number of terminal nodes."""
        return sum(1 for _ in self.terminals())

    def isomorphic(self, other: InteractionTree) -> bool:
        """Compare two trees irrespective of the order of siblings.

        Two nodes are identified if their operators, tags, strengths and values are equal and their children can
        be matched one to one.

        Returns:
            bool: True if both trees hold the same structure.
        """
        return self._isomorphic_nodes(self.ROOT, other, other.ROOT)

    def _isomorphic_nodes(self, idx: int, other: InteractionTree, other_idx: int) -> bool:
        node, other_node = self.node(idx), other.node(other_idx)
        if node.op is not None or other_node.op is not None:
            if node.op is None or other_node.op is None or node.op != other_node.op:
                return False
            if node.op.tag != other_node.op.tag or node.op.strength != other_node.op.strength:
                return False
            if node.value != other_node.value:
                return False
        if len(node.children) != len(other_node.children):
            return False
        unmatched = list(other_node.children)
        for child in node.children:
            for candidate in unmatched:
                if self._isomorphic_nodes(child, other, candidate):
                    unmatched.remove(candidate)
                    break
            else:
                return False
        return True

    def to_string(self) -> str:
        """Render the tree, one node per line indented by its site."""
        lines = ["root"]
        stack = [(child, 1) for child in reversed(self.root.children)]
        while stack:
            idx, level = stack.pop()
            node = self.node(idx)
            assert node.op is not None
            line = "  " * level + f"{node.op.name}@{node.op.si}"
            if node.is_terminal:
                line += f" [{node.op.strength}]"
            lines.append(line)
            stack.extend((child, level + 1) for child in reversed(node.children))
        return "\n".join(lines)

    def _live_nodes(self) -> set[int]:
        """Arena indices of nodes (root included) from which a terminal node is reachable."""
        live: set[int] = set()
        order: list[int] = []
        stack = [self.ROOT]
        while stack:
            idx = stack.pop()
            order.append(idx)
            stack.extend(self.node(idx).children)
        for idx in reversed(order):
            node = self.node(idx)
            if node.is_terminal or any(child in live for child in node.children):
                live.add(idx)
        return live

    def _open_dimensions(self) -> dict[int, int]:
        """Dimension of the auxiliary bond left open to the right of every node."""
        open_dims = {self.ROOT: 1}
        stack = [self.ROOT]
        while stack:
            idx = stack.pop()
            for child in self.node(idx).children:
                op = self.node(child).op
                assert op is not None
                if op.has_right:
                    open_dims[child] = op.right_dimension
                elif op.has_left:
                    open_dims[child] = 1
                else:
                    open_dims[child] = open_dims[idx]
                stack.append(child)
        return open_dims

    def to_mpo(self, length: int | None = None, physical_dimension: int | None = None) -> MPO:
        """Convert the tree into a Matrix Product Operator.

        Args:
            length: Number of sites. Defaults to the number of sites spanned by the deepest term.
            physical_dimension: Physical dimension, only required for an empty tree.

        Returns:
            MPO: The MPO with tensors of index order (sigma, sigma', left, right).

        Raises:
            ValueError: If the length is too short for the stored terms, a terminal operator leaves an auxiliary
                bond open, or the dimensions are inconsistent.
        """
        live = self._live_nodes()
        if self.ROOT not in live:
            if physical_dimension is None or length is None:
                msg = "An empty tree needs an explicit length and physical dimension."
                raise ValueError(msg)
            mpo = MPO()
            mpo.init_custom(
                [np.zeros((physical_dimension, physical_dimension, 1, 1), dtype=complex) for _ in range(length)],
                transpose=False,
            )
            return mpo

        ops = [self.node(idx).op for idx in live if idx != self.ROOT]
        depth = max(op.si for op in ops if op is not None) + 1
        if length is None:
            length = depth
        if length < depth:
            msg = f"The tree spans {depth} sites, an MPO of length {length} is too short."
            raise ValueError(msg)
        d = next(op.physical_dimension for op in ops if op is not None)
        if physical_dimension is not None and physical_dimension != d:
            msg = f"Physical dimension {physical_dimension} does not match the stored operators ({d})."
            raise ValueError(msg)

        open_dims = self._open_dimensions()
        # virtual states of every bond: node index -> offset, plus the finished state
        bonds: list[dict[int | str, int]] = [{self.ROOT: 0}]
        bond_dims = [1]
        frontier = [self.ROOT]
        finished = False
        for site in range(length):
            children = [
                child for idx in frontier for child in self.node(idx).children if child in live
            ]
            finished = finished or any(self.node(child).is_terminal for child in children)
            states: dict[int | str, int] = {}
            offset = 0
            if site < length - 1:
                for child in children:
                    if self.node(child).children and any(c in live for c in self.node(child).children):
                        states[child] = offset
                        offset += open_dims[child]
            if finished:
                states["finished"] = offset
                offset += 1
            bonds.append(states)
            bond_dims.append(offset)
            frontier = [idx for idx in states if idx != "finished"]

        tensors: list[NDArray[np.complex128]] = []
        identity = np.eye(d, dtype=complex)
        for site in range(length):
            left_states, right_states = bonds[site], bonds[site + 1]
            tensor = np.zeros((d, d, bond_dims[site], bond_dims[site + 1]), dtype=complex)
            if "finished" in left_states:
                tensor[:, :, left_states["finished"], right_states["finished"]] = identity
            for parent, row in left_states.items():
                if parent == "finished":
                    continue
                assert isinstance(parent, int)
                width = open_dims[parent]
                for child in self.node(parent).children:
                    if child not in live:
                        continue
                    node = self.node(child)
                    op = node.op
                    assert op is not None
                    if op.physical_dimension != d:
                        msg = f"Operator {op.name} on site {op.si} has physical dimension {op.physical_dimension}."
                        raise ValueError(msg)
                    block = _transition_block(op, width)
                    if child in right_states:
                        col = right_states[child]
                        tensor[:, :, row : row + width, col : col + block.shape[3]] += block
                    if node.is_terminal:
                        if block.shape[3] != 1:
                            msg = f"Terminal operator {op.name} on site {op.si} leaves an auxiliary bond open."
                            raise ValueError(msg)
                        col = right_states["finished"]
                        tensor[:, :, row : row + width, col : col + 1] += op.strength * block
            tensors.append(tensor)

        mpo = MPO()
        mpo.init_custom(tensors, transpose=False)
        return mpo


def _transition_block(op: LocalOperator, width: int) -> NDArray[np.complex128]:
    """MPO block (sigma, sigma', left, right) of an operator entered through an open bond of dimension `width`.

    Raises:
        ValueError: If the incoming auxiliary leg does not match the open bond.
    """
    blocks = op.matrix_blocks().transpose(1, 2, 0, 3)
    if op.has_left:
        if blocks.shape[2] != width:
            msg = f"Operator {op.name} on site {op.si} expects an auxiliary bond of dimension {blocks.shape[2]}."
            raise ValueError(msg)
        return blocks
    if width == 1:
        return blocks
    # plain operator passing an open auxiliary bond through
    d = op.physical_dimension
    block = np.zeros((d, d, width, width), dtype=complex)
    for x in range(width):
        block[:, :, x, x] = blocks[:, :, 0, 0]
    return block
