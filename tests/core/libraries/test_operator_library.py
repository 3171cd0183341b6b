# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for the Operator Library.

This module includes unit tests for the single-site operators provided by `OperatorLibrary`, verifying their
matrices, their algebra and the arithmetic defined on `BaseOperator`.
"""

from __future__ import annotations

import numpy as np
import pytest
from numpy.testing import assert_allclose

from mqt.tnsweep.core.libraries.operator_library import (
    BaseOperator,
    Create,
    Destroy,
    Id,
    Number,
    OperatorLibrary,
    Sm,
    Sp,
    Sz,
    X,
    Y,
    Z,
)


def test_pauli_algebra() -> None:
    """The Pauli operators square to the identity and satisfy XY = iZ."""
    for op in (X(), Y(), Z()):
        assert op.dimension == 2
        assert_allclose(op.matrix @ op.matrix, np.eye(2))
    assert_allclose(X().matrix @ Y().matrix, 1j * Z().matrix)


def test_spin_operators() -> None:
    """S^z is Z / 2 and the ladder operators combine to S^x and S^y."""
    assert_allclose(Sz().matrix, Z().matrix / 2)
    assert_allclose(Sp().matrix + Sm().matrix, X().matrix)
    assert_allclose(-1j * (Sp().matrix - Sm().matrix), Y().matrix)
    assert_allclose(Sp().matrix, Sm().matrix.conj().T)


def test_bosonic_operators() -> None:
    """Creation and annihilation operators of a truncated oscillator."""
    a = Destroy(3)
    adag = Create(3)
    assert a.dimension == 3
    assert_allclose(a.matrix, np.array([[0, 1, 0], [0, 0, np.sqrt(2)], [0, 0, 0]]))
    assert_allclose(adag.matrix, a.matrix.T)
    assert_allclose(adag.matrix @ a.matrix, Number(3).matrix)
    assert_allclose(Number(4).matrix, np.diag([0, 1, 2, 3]))


def test_fermionic_site() -> None:
    """On a two-dimensional site the number operator is c^dag c and Z is the parity (-1)^n."""
    c = Destroy()
    assert_allclose(Create().matrix @ c.matrix, Number().matrix)
    assert_allclose(Z().matrix, np.eye(2) - 2 * Number().matrix)
    assert_allclose(c.matrix @ Create().matrix + Create().matrix @ c.matrix, np.eye(2))


def test_identity() -> None:
    """The identity operator takes its dimension as argument."""
    assert_allclose(Id().matrix, np.eye(2))
    assert Id(5).dimension == 5


def test_operator_arithmetic() -> None:
    """Sums, products and the Hermitian conjugate of operators."""
    total = X() + Z()
    assert_allclose(total.matrix, np.array([[1, 1], [1, -1]]))

    product = X() @ Z()
    assert product.name == "xz"
    assert_allclose(product.matrix, X().matrix @ Z().matrix)

    conjugate = Sp().dag()
    assert conjugate.name == "spdag"
    assert_allclose(conjugate.matrix, Sm().matrix)


def test_operator_errors() -> None:
    """Non-square matrices and mismatching dimensions are rejected."""
    with pytest.raises(ValueError, match="Matrix must be square"):
        BaseOperator(np.zeros((2, 3)))
    with pytest.raises(ValueError, match="different dimension"):
        X() + Number(3)
    with pytest.raises(ValueError, match="different dimension"):
        X() @ Destroy(3)


def test_operator_library_names() -> None:
    """The library maps names to operator classes."""
    assert OperatorLibrary.x is X
    assert OperatorLibrary.n is Number
    for name in ("x", "y", "z", "id", "sz", "sp", "sm", "destroy", "create", "n"):
        op = getattr(OperatorLibrary, name)()
        assert op.name == name
        assert isinstance(op, BaseOperator)
