# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Library of local operators.

This module defines a collection of single-site operator classes used to build Hamiltonians and observables.
Each operator is implemented as a class derived from BaseOperator and carries its name and matrix representation.
The OperatorLibrary class aggregates all these operator classes for easy access by name.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


class BaseOperator:
    """Base class representing a single-site operator.

    Attributes:
        name: The name of the operator.
        matrix: The matrix representation of the operator.
        dimension: The physical dimension the operator acts on.
    """

    name: str = "op"
    matrix: NDArray[np.complex128]
    dimension: int

    def __init__(self, mat: NDArray[np.complex128]) -> None:
        """Initializes a BaseOperator instance with the given matrix.

        Args:
            mat: The matrix representation of the operator.

        Raises:
            ValueError: If the matrix is not square.
        """
        mat = np.asarray(mat)
        if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
            msg = "Matrix must be square"
            raise ValueError(msg)

        self.matrix = mat.astype(np.complex128)
        self.dimension = mat.shape[0]

    def __add__(self, other: BaseOperator) -> BaseOperator:
        """Adds two operators together.

        Raises:
            ValueError: If the operators act on different dimensions.

        Returns:
            BaseOperator: A new operator representing the sum of both.
        """
        if self.dimension != other.dimension:
            msg = "Cannot add operators of different dimension"
            raise ValueError(msg)
        return BaseOperator(self.matrix + other.matrix)

    def __matmul__(self, other: BaseOperator) -> BaseOperator:
        """Operator product, `other` acts first.

        Raises:
            ValueError: If the operators act on different dimensions.

        Returns:
            BaseOperator: A new operator representing the product.
        """
        if self.dimension != other.dimension:
            msg = "Cannot multiply operators of different dimension"
            raise ValueError(msg)
        result = BaseOperator(self.matrix @ other.matrix)
        result.name = self.name + other.name
        return result

    def dag(self) -> BaseOperator:
        """Hermitian conjugate of the operator."""
        result = BaseOperator(self.matrix.conj().T)
        result.name = self.name + "dag"
        return result


class X(BaseOperator):
    """Pauli-X operator."""

    name = "x"

    def __init__(self) -> None:
        """Initializes the Pauli-X operator."""
        mat = np.array([[0, 1], [1, 0]])
        super().__init__(mat)


class Y(BaseOperator):
    """Pauli-Y operator."""

    name = "y"

    def __init__(self) -> None:
        """Initializes the Pauli-Y operator."""
        mat = np.array([[0, -1j], [1j, 0]])
        super().__init__(mat)


class Z(BaseOperator):
    """Pauli-Z operator.

    For a spinless fermionic site in the occupation basis (|0>, |1>), Z is also the local parity operator
    (-1)^n used as the Jordan-Wigner string.
    """

    name = "z"

    def __init__(self) -> None:
        """Initializes the Pauli-Z operator."""
        mat = np.array([[1, 0], [0, -1]])
        super().__init__(mat)


class Id(BaseOperator):
    """Identity operator of dimension d."""

    name = "id"

    def __init__(self, d: int = 2) -> None:
        """Initializes the identity operator.

        Args:
            d: Physical dimension.
        """
        mat = np.eye(d)
        super().__init__(mat)


class Sz(BaseOperator):
    """Spin-1/2 S^z operator."""

    name = "sz"

    def __init__(self) -> None:
        """Initializes S^z = Z / 2."""
        mat = np.array([[0.5, 0], [0, -0.5]])
        super().__init__(mat)


class Sp(BaseOperator):
    """Spin-1/2 raising operator S^+."""

    name = "sp"

    def __init__(self) -> None:
        """Initializes S^+ = |up><down|."""
        mat = np.array([[0, 1], [0, 0]])
        super().__init__(mat)


class Sm(BaseOperator):
    """Spin-1/2 lowering operator S^-."""

    name = "sm"

    def __init__(self) -> None:
        """Initializes S^- = |down><up|."""
        mat = np.array([[0, 0], [1, 0]])
        super().__init__(mat)


class Destroy(BaseOperator):
    """Annihilation operator in the occupation basis (|0>, |1>, ...)."""

    name = "destroy"

    def __init__(self, d: int = 2) -> None:
        """Initializes the annihilation operator.

        Args:
            d: Physical dimension.
        """
        mat = np.diag(np.sqrt(np.arange(1, d)), k=1)
        super().__init__(mat)


class Create(BaseOperator):
    """Creation operator in the occupation basis (|0>, |1>, ...)."""

    name = "create"

    def __init__(self, d: int = 2) -> None:
        """Initializes the creation operator.

        Args:
            d: Physical dimension.
        """
        mat = np.diag(np.sqrt(np.arange(1, d)), k=-1)
        super().__init__(mat)


class Number(BaseOperator):
    """Occupation number operator n = a^dag a."""

    name = "n"

    def __init__(self, d: int = 2) -> None:
        """Initializes the number operator.

        Args:
            d: Physical dimension.
        """
        mat = np.diag(np.arange(d))
        super().__init__(mat)


class OperatorLibrary:
    """A collection of local operator classes.

    Attributes:
        x: Class for the Pauli-X operator.
        y: Class for the Pauli-Y operator.
        z: Class for the Pauli-Z (parity) operator.
        id: Class for the identity operator.
        sz: Class for the spin-1/2 S^z operator.
        sp: Class for the spin-1/2 raising operator.
        sm: Class for the spin-1/2 lowering operator.
        destroy: Class for the annihilation operator.
        create: Class for the creation operator.
        n: Class for the number operator.
    """

    x = X
    y = Y
    z = Z
    id = Id
    sz = Sz
    sp = Sp
    sm = Sm
    destroy = Destroy
    create = Create
    n = Number
