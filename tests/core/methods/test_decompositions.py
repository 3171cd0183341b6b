# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tests for decompositions.

This module tests the left and right qr decompositions, the number of singular values kept under the different
truncation policies and the truncated split of merged two-site tensors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest

from mqt.tnsweep.core.data_structures.simulation_parameters import TruncationPolicy, truncbelow, truncdim
from mqt.tnsweep.core.methods.decompositions import left_qr, right_qr, split_two_site_tensor, truncation_cut
from mqt.tnsweep.core.methods.tdvp import merge_mps_tensors

if TYPE_CHECKING:
    from numpy.typing import NDArray


def crandn(
    size: int | tuple[int, ...], *args: int, seed: np.random.Generator | int | None = None
) -> NDArray[np.complex128]:
    """Draw random samples from the standard complex normal distribution.

    Args:
        size (int |Tuple[int,...]): The size/shape of the output array.
        *args (int): Additional dimensions for the output array.
        seed (Generator | int): The seed for the random number generator.

    Returns:
        NDArray[np.complex128]: The array of random complex numbers.
    """
    if isinstance(size, int) and len(args) > 0:
        size = (size, *list(args))
    elif isinstance(size, int):
        size = (size,)
    rng = np.random.default_rng(seed)
    # 1 / sqrt(2) is a normalization factor
    return np.asarray((rng.standard_normal(size) + 1j * rng.standard_normal(size)) / np.sqrt(2), dtype=np.complex128)


def two_site_tensor(s_vec: NDArray[np.float64]) -> NDArray[np.complex128]:
    """Merged two-site tensor (d0*d1, D0, D2) = (4, 2, 3) with the singular values `s_vec` across the cut."""
    u_mat, _ = np.linalg.qr(crandn(4, 4, seed=1))
    v_mat, _ = np.linalg.qr(crandn(6, 4, seed=2))
    mat = u_mat @ np.diag(s_vec) @ v_mat.conj().T
    # (d0, D0, d1, D2) -> (d0, d1, D0, D2)
    return mat.reshape(2, 2, 2, 3).transpose(0, 2, 1, 3).reshape(4, 2, 3)


def test_right_qr() -> None:
    """Tests the right qr decomposition.

    Ensures that it produces tensors of the correct shape and a unitary tensor.
    Also checks that the decomposition is actually the original tensor.
    """
    shape = (2, 3, 4)
    tensor = crandn(shape)
    q_tensor, r_matrix = right_qr(tensor)
    assert q_tensor.ndim == 3
    assert r_matrix.ndim == 2
    assert q_tensor.shape[0] == shape[0]
    assert q_tensor.shape[1] == shape[1]
    assert r_matrix.shape[1] == shape[2]
    assert q_tensor.shape[2] == r_matrix.shape[0]
    # Check that q_tensor is unitary
    iden = np.eye(q_tensor.shape[2])
    q_matrix = q_tensor.reshape(q_tensor.shape[0] * q_tensor.shape[1], -1)
    assert np.allclose(q_matrix.conj().T @ q_matrix, iden)
    # Check that qr = tensor
    contr = np.tensordot(q_tensor, r_matrix, axes=(2, 0))
    assert np.allclose(contr, tensor)


def test_left_qr() -> None:
    """Tests the left qr decomposition.

    Ensures that it produces tensors of the correct shape and a unitary tensor.
    Also checks that the decomposition is actually the original tensor.
    """
    shape = (2, 3, 4)
    tensor = crandn(shape)
    q_tensor, r_matrix = left_qr(tensor)
    assert q_tensor.ndim == 3
    assert r_matrix.ndim == 2
    assert q_tensor.shape[0] == shape[0]
    assert q_tensor.shape[2] == shape[2]
    assert r_matrix.shape[0] == shape[1]
    assert q_tensor.shape[1] == r_matrix.shape[1]
    # Check that q_tensor is unitary
    iden = np.eye(q_tensor.shape[1])
    q_matrix = q_tensor.transpose(0, 2, 1)
    q_matrix = q_matrix.reshape(-1, q_tensor.shape[1])
    assert np.allclose(q_matrix.T.conj() @ q_matrix, iden)
    # Check that qr = tensor
    contr = np.tensordot(q_tensor, r_matrix, axes=(1, 1))
    contr = contr.transpose(0, 2, 1)
    assert np.allclose(contr, tensor)


def test_truncation_cut_absolute() -> None:
    """Absolute truncation drops all singular values at or below the threshold."""
    s_vec = np.array([1, 0.5, 0.1, 0.01])
    assert truncation_cut(s_vec, truncbelow(0.2)) == 2
    assert truncation_cut(s_vec, truncbelow(1e-4)) == 4
    assert truncation_cut(s_vec, truncbelow(1e-4, max_bond_dim=3)) == 3
    assert truncation_cut(s_vec, truncdim(2)) == 2
    assert truncation_cut(s_vec, TruncationPolicy(threshold=0.2, min_bond_dim=3)) == 3


def test_truncation_cut_relative() -> None:
    """Relative truncation drops the smallest singular values while their weight stays below the threshold."""
    s_vec = np.array([1, 0.5, 0.1, 0.01])
    # discarded weight 0.0101 / 1.2601 < 0.01
    assert truncation_cut(s_vec, TruncationPolicy(threshold=0.01, mode="relative")) == 2
    assert truncation_cut(s_vec, TruncationPolicy(threshold=1e-6, mode="relative")) == 4
    assert truncation_cut(s_vec, TruncationPolicy(threshold=0.5, mode="relative")) == 1


def test_truncation_cut_keeps_one() -> None:
    """At least one singular value is kept."""
    assert truncation_cut(np.zeros(3), truncbelow(1e-8)) == 1
    assert truncation_cut(np.array([1e-12]), truncbelow(1e-8)) == 1


@pytest.mark.parametrize("svd_distribution", ["left", "right"])
def test_split_two_site_tensor(svd_distribution: str) -> None:
    """The split reproduces the tensor up to the discarded weight and orthogonalizes the other factor."""
    s_vec = np.array([1.0, 0.5, 0.1, 1e-4])
    tensor = two_site_tensor(s_vec)
    left, right, info = split_two_site_tensor(tensor, (2, 2), truncbelow(1e-3), svd_distribution)
    assert left.shape == (2, 2, 3)
    assert right.shape == (2, 3, 3)
    assert info.dim == 3
    assert info.truncation_error == pytest.approx(1e-4)
    np.testing.assert_allclose(np.linalg.norm(merge_mps_tensors(left, right) - tensor), 1e-4, rtol=1e-6)

    if svd_distribution == "right":
        mat = left.reshape(4, 3)
        np.testing.assert_allclose(mat.conj().T @ mat, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(np.linalg.norm(right), np.linalg.norm(s_vec[:3]))
    else:
        mat = right.transpose(1, 0, 2).reshape(3, 6)
        np.testing.assert_allclose(mat @ mat.conj().T, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(np.linalg.norm(left), np.linalg.norm(s_vec[:3]))


def test_split_without_truncation_is_exact() -> None:
    """Keeping every non-zero singular value reproduces the tensor exactly."""
    s_vec = np.array([1.0, 0.5, 0.1, 1e-4])
    tensor = two_site_tensor(s_vec)
    left, right, info = split_two_site_tensor(tensor, (2, 2), truncdim(16), "right")
    assert info.dim == 4
    assert info.truncation_error == 0.0
    np.testing.assert_allclose(merge_mps_tensors(left, right), tensor, atol=1e-12)


def test_split_errors() -> None:
    """Unsplittable physical dimensions and unknown distributions are rejected."""
    tensor = two_site_tensor(np.array([1.0, 0.5, 0.1, 0.01]))
    with pytest.raises(ValueError, match="cannot be split"):
        split_two_site_tensor(tensor, (2, 3), truncbelow(), "left")
    with pytest.raises(ValueError, match="svd_distribution"):
        split_two_site_tensor(tensor, (2, 2), truncbelow(), "middle")
