# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Local operators of interaction terms.

This module implements the LocalOperator class, the leaf data stored in every node of an interaction tree.
A local operator is a single-site tensor together with a human-readable name, the site it acts on, an optional
strength (only meaningful on terminal nodes) and an optional tag labelling its legs.

The tensor index order is (left_aux, sigma, sigma', right_aux), where the auxiliary legs are optional.
A plain operator is a (d, d) matrix with one incoming and one outgoing physical leg. Operators obtained from
decomposing a multi-site interaction, e.g. S_i . S_j = sum_a S_i^a S_j^a, carry additional auxiliary (virtual-bond)
legs connecting them to their partners. Such operators need tags to tell apart tensor-identical operators that
connect different virtual bonds.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

if TYPE_CHECKING:
    from numpy.typing import NDArray

    Tag = tuple[tuple[str, ...], tuple[str, ...]]


class LocalOperator:
    """Single-site operator of an interaction term.

    Attributes:
    tensor (NDArray[np.complex128]): Operator tensor with index order (left_aux?, sigma, sigma', right_aux?).
    name (str): Human-readable name.
    si (int): Site index (0-based).
    has_left (bool): True if the tensor carries an incoming auxiliary leg.
    has_right (bool): True if the tensor carries an outgoing auxiliary leg.
    strength (complex | None): Term strength, only set on terminal nodes of an interaction tree.
    tag (Tag | None): Pair (incoming, outgoing) of leg labels.
    """

    def __init__(
        self,
        tensor: NDArray[np.complex128],
        name: str,
        si: int,
        *,
        has_left: bool | None = None,
        has_right: bool | None = None,
        strength: complex | None = None,
        tag: Tag | None = None,
    ) -> None:
        """Initializes a local operator.

        Args:
            tensor: Operator tensor, a (d, d) matrix or a tensor with auxiliary legs.
            name: Human-readable name.
            si: Site index.
            has_left: Whether a 3-leg tensor carries the incoming auxiliary leg.
            has_right: Whether a 3-leg tensor carries the outgoing auxiliary leg.
            strength: Optional strength.
            tag: Optional leg labels.

        Raises:
            ValueError: If the site is negative or the leg layout cannot be determined.
        """
        if si < 0:
            msg = f"Site index must be non-negative, got {si}."
            raise ValueError(msg)
        tensor = np.asarray(tensor, dtype=np.complex128)
        if tensor.ndim == 2:
            has_left, has_right = False, False
        elif tensor.ndim == 4:
            has_left, has_right = True, True
        elif tensor.ndim == 3:
            if has_left is None and has_right is not None:
                has_left = not has_right
            elif has_right is None and has_left is not None:
                has_right = not has_left
            if has_left is None or has_left == has_right:
                msg = "A 3-leg operator must carry exactly one auxiliary leg, specify has_left or has_right."
                raise ValueError(msg)
        else:
            msg = f"Operator tensors must have 2, 3 or 4 legs, got {tensor.ndim}."
            raise ValueError(msg)

        self.tensor = tensor
        self.name = str(name)
        self.si = si
        self.has_left = bool(has_left)
        self.has_right = bool(has_right)
        self.strength = strength
        self._tag: Tag | None = None
        self.tag = tag

    @property
    def legs(self) -> tuple[int, int]:
        """Number of (incoming, outgoing) legs."""
        return 1 + self.has_left, 1 + self.has_right

    @property
    def physical_dimension(self) -> int:
        """Dimension of the physical legs."""
        return self.tensor.shape[1] if self.has_left else self.tensor.shape[0]

    @property
    def left_dimension(self) -> int:
        """Dimension of the incoming auxiliary leg, 1 if absent."""
        return self.tensor.shape[0] if self.has_left else 1

    @property
    def right_dimension(self) -> int:
        """Dimension of the outgoing auxiliary leg, 1 if absent."""
        return self.tensor.shape[-1] if self.has_right else 1

    @property
    def tag(self) -> Tag | None:
        """Leg labels (incoming, outgoing)."""
        return self._tag

    @tag.setter
    def tag(self, tag: Tag | None) -> None:
        if tag is not None:
            incoming, outgoing = tuple(tag[0]), tuple(tag[1])
            if (len(incoming), len(outgoing)) != self.legs:
                msg = f"Tag {tag} does not match the legs {self.legs} of operator {self.name}."
                raise ValueError(msg)
            tag = (incoming, outgoing)
        self._tag = tag

    def has_tag(self) -> bool:
        """Whether the operator carries leg labels."""
        return self._tag is not None

    def matrix_blocks(self) -> NDArray[np.complex128]:
        """Tensor reshaped to (left_dim, d, d, right_dim) with trivial auxiliary legs added."""
        d = self.physical_dimension
        return self.tensor.reshape(self.left_dimension, d, d, self.right_dimension)

    def copy(self) -> LocalOperator:
        """Deep copy of the operator."""
        return copy.deepcopy(self)

    def with_parity(self, parity: NDArray[np.complex128]) -> LocalOperator:
        """Fuse a parity operator into this operator.

        The parity acts after the operator on the physical leg, i.e. the result represents Z . O.

        Args:
            parity: The (d, d) parity operator.

        Returns:
            LocalOperator: A new operator with the fused parity.
        """
        blocks = oe.contract("pk,lkqr->lpqr", np.asarray(parity, dtype=np.complex128), self.matrix_blocks())
        fused = self.copy()
        fused.tensor = blocks.reshape(self.tensor.shape)
        return fused

    def __mul__(self, other: LocalOperator) -> LocalOperator:
        """Operator product at a common site, `other` acts first.

        The outgoing auxiliary leg of `self` is contracted with the incoming auxiliary leg of `other`.

        Returns:
            LocalOperator: The product operator.

        Raises:
            ValueError: If the operators act on different sites or their auxiliary legs do not fit together.
        """
        if self.si != other.si:
            msg = f"Cannot multiply operators acting on different sites ({self.si} and {other.si})."
            raise ValueError(msg)
        if self.has_right != other.has_left:
            msg = f"Auxiliary legs of {self.name} and {other.name} cannot be contracted."
            raise ValueError(msg)
        product = oe.contract("lpkr,rkqt->lpqt", self.matrix_blocks(), other.matrix_blocks())
        d = self.physical_dimension
        shape = (
            ([product.shape[0]] if self.has_left else [])
            + [d, d]
            + ([product.shape[-1]] if other.has_right else [])
        )
        tag = None
        if self.has_tag() and other.has_tag():
            tag = (self.tag[0], other.tag[1])
        return LocalOperator(
            product.reshape(shape),
            self.name + other.name,
            self.si,
            has_left=self.has_left,
            has_right=other.has_right,
            tag=tag,
        )

    def __eq__(self, other: object) -> bool:
        """Structural equality: same site, same legs and same tensor. Name, strength and tag are ignored."""
        if not isinstance(other, LocalOperator):
            return NotImplemented
        return (
            self.si == other.si
            and self.has_left == other.has_left
            and self.has_right == other.has_right
            and self.tensor.shape == other.tensor.shape
            and bool(np.array_equal(self.tensor, other.tensor))
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        """Short representation showing name, site and legs."""
        return f"LocalOperator({self.name!r}, si={self.si}, legs={self.legs}, tag={self.tag})"


def identity_operator(physical_dimension: int, si: int) -> LocalOperator:
    """Identity placeholder for a pass-through site.

    Returns:
        LocalOperator: Identity named "I".
    """
    return LocalOperator(np.eye(physical_dimension, dtype=np.complex128), "I", si)


def parity_operator(parity: NDArray[np.complex128], si: int) -> LocalOperator:
    """Parity (string) placeholder for a pass-through site of a fermionic term.

    Returns:
        LocalOperator: Parity operator named "Z".
    """
    return LocalOperator(parity, "Z", si)
