# Copyright (c) 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tensor Network Decompositions.

This module implements left and right moving versions of the QR decomposition and the truncated two-site SVD
split used by the TDVP sweeps. MPS tensors have the index order (sigma, chi_left, chi_right).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ..data_structures.diagnostics import BondInfo

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from ..data_structures.simulation_parameters import TruncationPolicy


def right_qr(mps_tensor: NDArray[np.complex128]) -> tuple[NDArray[np.complex128], NDArray[np.complex128]]:
    """Right QR.

    Performs the QR decomposition of an MPS tensor moving to the right.

    Args:
        mps_tensor: The tensor to be decomposed.

    Returns:
        q_tensor: The Q tensor with the left virtual leg and the physical
            leg (phys,left,new).
        r_mat: The R matrix with the right virtual leg (new,right).
    """
    old_shape = mps_tensor.shape
    qr_shape = (old_shape[0] * old_shape[1], old_shape[2])
    mps_tensor = mps_tensor.reshape(qr_shape)
    q_mat, r_mat = np.linalg.qr(mps_tensor)
    new_shape = (old_shape[0], old_shape[1], -1)
    q_tensor = q_mat.reshape(new_shape)
    return q_tensor, r_mat


def left_qr(mps_tensor: NDArray[np.complex128]) -> tuple[NDArray[np.complex128], NDArray[np.complex128]]:
    """Left QR.

    Performs the QR decomposition of an MPS tensor moving to the left.

    Args:
        mps_tensor: The tensor to be decomposed.

    Returns:
        q_tensor: The Q tensor with the physical leg and the right virtual
            leg (phys,new,right).
        r_mat: The R matrix with the left virtual leg (left,new).

    """
    old_shape = mps_tensor.shape
    mps_tensor = mps_tensor.transpose(0, 2, 1)
    qr_shape = (old_shape[0] * old_shape[2], old_shape[1])
    mps_tensor = mps_tensor.reshape(qr_shape)
    q_mat, r_mat = np.linalg.qr(mps_tensor)
    q_tensor = q_mat.reshape((old_shape[0], old_shape[2], -1))
    q_tensor = q_tensor.transpose(0, 2, 1)
    r_mat = r_mat.T
    return q_tensor, r_mat


def truncation_cut(s_vec: NDArray[np.float64], trunc: TruncationPolicy) -> int:
    """Number of singular values kept under a truncation policy.

    Args:
        s_vec: Singular values in descending order.
        trunc: The truncation policy.

    Returns:
        int: Number of kept singular values, at least one.
    """
    if trunc.mode == "absolute":
        keep = int(np.count_nonzero(s_vec > trunc.threshold))
    else:
        keep = len(s_vec)
        total = np.sum(s_vec**2)
        discard = 0.0
        for idx, s in enumerate(reversed(s_vec)):
            discard += s**2
            if discard > trunc.threshold * total:
                keep = len(s_vec) - idx
                break
    keep = max(keep, min(trunc.min_bond_dim, len(s_vec)), 1)
    if trunc.max_bond_dim is not None:
        keep = min(keep, trunc.max_bond_dim)
    return keep


def split_two_site_tensor(
    tensor: NDArray[np.complex128],
    physical_dimensions: tuple[int, int],
    trunc: TruncationPolicy,
    svd_distribution: str,
) -> tuple[NDArray[np.complex128], NDArray[np.complex128], BondInfo]:
    """Split a merged two-site tensor into two MPS tensors with a truncated SVD.

    The input tensor has a composite physical index of dimension d0*d1 and virtual dimensions D0 and D2,
    i.e. its shape is (d0*d1, D0, D2). It is split into
      - a left tensor of shape (d0, D0, num_sv),
      - a right tensor of shape (d1, num_sv, D2),
    where num_sv is the number of singular values retained after truncation.

    The parameter `svd_distribution` determines which factor absorbs the singular values:
        - "left"  : The left tensor, the right tensor is right-orthogonal.
        - "right" : The right tensor, the left tensor is left-orthogonal.

    Args:
        tensor: Merged two-site tensor of shape (d0*d1, D0, D2).
        physical_dimensions: The physical dimensions (d0, d1).
        trunc: Truncation policy of the SVD.
        svd_distribution: "left" or "right".

    Returns:
        tuple: (left tensor, right tensor, information about the truncated bond).

    Raises:
        ValueError: If the physical dimensions do not fit the tensor or the distribution is unknown.
    """
    d0, d1 = physical_dimensions
    if tensor.shape[0] != d0 * d1:
        msg = f"A physical dimension of {tensor.shape[0]} cannot be split into {d0} x {d1}."
        raise ValueError(msg)

    # (d0, d1, D0, D2) -> (d0, D0, d1, D2)
    theta = tensor.reshape(d0, d1, tensor.shape[1], tensor.shape[2]).transpose((0, 2, 1, 3))
    shape = theta.shape
    theta_mat = theta.reshape(shape[0] * shape[1], shape[2] * shape[3])
    u_mat, s_vec, v_mat = np.linalg.svd(theta_mat, full_matrices=False)

    keep = truncation_cut(s_vec, trunc)
    info = BondInfo.from_singular_values(s_vec[:keep], s_vec[keep:])
    left_tensor = u_mat[:, :keep].reshape((shape[0], shape[1], keep))
    right_tensor = v_mat[:keep, :].reshape((keep, shape[2], shape[3]))
    s_vec = s_vec[:keep]

    if svd_distribution == "left":
        left_tensor = left_tensor * s_vec
    elif svd_distribution == "right":
        right_tensor = right_tensor * s_vec[:, None, None]
    else:
        msg = "svd_distribution parameter must be left or right."
        raise ValueError(msg)

    # physical dimension first
    right_tensor = right_tensor.transpose((1, 0, 2))
    return left_tensor, right_tensor, info
