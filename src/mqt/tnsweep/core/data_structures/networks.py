# Copyright (c) 2023 - 2025 Chair for Design Automation, TUM
# All rights reserved.
#
# SPDX-License-Identifier: MIT
#
# Licensed under the MIT License

"""Tensor Network Data Structures.

This module implements classes for representing quantum states and operators using tensor networks.
It defines the Matrix Product State (MPS) and Matrix Product Operator (MPO) classes, along with methods for
canonicalization, normalization, measurement, and validity checks.

The MPS keeps track of its orthogonality center as an interval [l, r]: all sites left of l are
left-orthogonal and all sites right of r are right-orthogonal. A global scalar coefficient multiplies the
tensors, so that rescaling the state never touches the tensors.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

import numpy as np
import opt_einsum as oe

from ..methods.decompositions import left_qr, right_qr

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from .simulation_parameters import Observable


class MPS:
    """Matrix Product State (MPS) class for representing quantum states.

    The index order is (sigma, chi_l-1, chi_l).

    Attributes:
    length (int): The number of sites in the MPS.
    tensors (list[NDArray[np.complex128]]): List of rank-3 tensors representing the MPS.
    physical_dimensions (list[int]): List of physical dimensions for each site.
    center (list[int]): Orthogonality center interval [l, r].
    coefficient (complex): Global scalar multiplying the tensors.

    Methods:
    canonicalize(si: int, sj: int) -> None:
        Moves the orthogonality center into the interval [si, sj].
    shift_orthogonality_center_right(current_orthogonality_center: int) -> None:
        Shifts the orthogonality center one site to the right with a QR decomposition.
    shift_orthogonality_center_left(current_orthogonality_center: int) -> None:
        Shifts the orthogonality center one site to the left with a QR decomposition.
    set_canonical_form(orthogonality_center: int) -> None:
        Left and right normalizes the MPS around a selected site.
    rmul(x: complex) -> None:
        Multiplies the state by a scalar.
    normalize() -> None:
        Normalizes the state.
    norm() -> np.float64:
        Computes the norm of the state.
    """

    def __init__(
        self,
        length: int,
        tensors: list[NDArray[np.complex128]] | None = None,
        physical_dimensions: list[int] | int | None = None,
        state: str = "zeros",
    ) -> None:
        """Initializes a Matrix Product State (MPS).

        Args:
            length: Number of sites in the MPS.
            tensors: Predefined tensors representing the MPS. Must match `length` if provided.
                If None, tensors are initialized according to `state`.
            physical_dimensions: Physical dimension for each site. Defaults to spin-1/2 sites (dimension 2) if None.
            state: Initial product state configuration. Valid options include:
                - "zeros": Initializes all sites to |0⟩.
                - "ones": Initializes all sites to |1⟩.
                - "x+": Initializes each site to (|0⟩ + |1⟩)/√2.
                - "x-": Initializes each site to (|0⟩ - |1⟩)/√2.
                - "y+": Initializes each site to (|0⟩ + i|1⟩)/√2.
                - "y-": Initializes each site to (|0⟩ - i|1⟩)/√2.
                - "Neel": Alternating pattern |1010...⟩.
                - "wall": Domain wall at the middle |000111⟩.
                - "random": Initializes each site randomly.
                Default is "zeros".

        Raises:
            ValueError: If the provided `state` parameter does not match any valid initialization string.
        """
        if length < 1:
            msg = "An MPS needs at least one site."
            raise ValueError(msg)
        self.length = length
        if physical_dimensions is None:
            self.physical_dimensions = [2] * length
        elif isinstance(physical_dimensions, int):
            self.physical_dimensions = [physical_dimensions] * length
        else:
            self.physical_dimensions = list(physical_dimensions)

        if tensors is not None:
            assert len(tensors) == length
            self.tensors = [np.asarray(tensor, dtype=np.complex128) for tensor in tensors]
            self.physical_dimensions = [tensor.shape[0] for tensor in self.tensors]
        else:
            self.tensors = []
        assert len(self.physical_dimensions) == length

        if tensors is None:
            rng = np.random.default_rng()
            for i, d in enumerate(self.physical_dimensions):
                vector = np.zeros(d, dtype=complex)
                if state == "zeros":
                    vector[0] = 1
                elif state == "ones":
                    vector[1] = 1
                elif state == "x+":
                    vector[0] = 1 / np.sqrt(2)
                    vector[1] = 1 / np.sqrt(2)
                elif state == "x-":
                    vector[0] = 1 / np.sqrt(2)
                    vector[1] = -1 / np.sqrt(2)
                elif state == "y+":
                    vector[0] = 1 / np.sqrt(2)
                    vector[1] = 1j / np.sqrt(2)
                elif state == "y-":
                    vector[0] = 1 / np.sqrt(2)
                    vector[1] = -1j / np.sqrt(2)
                elif state == "Neel":
                    if i % 2:
                        vector[0] = 1
                    else:
                        vector[1] = 1
                elif state == "wall":
                    if i < length // 2:
                        vector[0] = 1
                    else:
                        vector[1] = 1
                elif state == "random":
                    vector = rng.random(d) + 1j * rng.random(d)
                    vector /= np.linalg.norm(vector)
                else:
                    msg = "Invalid state string"
                    raise ValueError(msg)

                self.tensors.append(vector.reshape(d, 1, 1))

        self.center = [0, length - 1]
        self.coefficient: complex = 1.0 + 0.0j

    def get_max_bond(self) -> int:
        """Maximum virtual bond dimension of the network."""
        return max(max(tensor.shape[1], tensor.shape[2]) for tensor in self.tensors)

    def bond_dimensions(self) -> list[int]:
        """Dimensions of the L-1 internal bonds."""
        return [tensor.shape[2] for tensor in self.tensors[:-1]]

    def almost_equal(self, other: MPS) -> bool:
        """Checks if the tensors and coefficients of this MPS are almost equal to the other MPS.

        Args:
            other (MPS): The other MPS to compare with.

        Returns:
            bool: True if all tensors of this tensor are almost equal to the
                other MPS, False otherwise.
        """
        if self.length != other.length:
            return False
        if not np.isclose(self.coefficient, other.coefficient):
            return False
        for i in range(self.length):
            if self.tensors[i].shape != other.tensors[i].shape:
                return False
            if not np.allclose(self.tensors[i], other.tensors[i]):
                return False
        return True

    def shift_orthogonality_center_right(self, current_orthogonality_center: int) -> None:
        """Shifts orthogonality center right.

        Performs a QR decomposition of the tensor at the current center and absorbs R into its right neighbour.
        At the last site R is a norm factor which is discarded.

        Args:
            current_orthogonality_center (int): current center
        """
        site_tensor, bond_tensor = right_qr(self.tensors[current_orthogonality_center])
        self.tensors[current_orthogonality_center] = site_tensor
        if current_orthogonality_center + 1 < self.length:
            self.tensors[current_orthogonality_center + 1] = oe.contract(
                "ij, ajc->aic", bond_tensor, self.tensors[current_orthogonality_center + 1]
            )

    def shift_orthogonality_center_left(self, current_orthogonality_center: int) -> None:
        """Shifts orthogonality center left.

        Mirror image of `shift_orthogonality_center_right`.

        Args:
            current_orthogonality_center (int): current center
        """
        site_tensor, bond_tensor = left_qr(self.tensors[current_orthogonality_center])
        self.tensors[current_orthogonality_center] = site_tensor
        if current_orthogonality_center > 0:
            self.tensors[current_orthogonality_center - 1] = oe.contract(
                "abj, ji->abi", self.tensors[current_orthogonality_center - 1], bond_tensor
            )

    def canonicalize(self, si: int, sj: int) -> None:
        """Move the orthogonality center into the interval [si, sj].

        Only the sites between the current and the requested center are touched. Afterwards every site left of si
        is left-orthogonal and every site right of sj is right-orthogonal.

        Args:
            si: Left end of the requested center.
            sj: Right end of the requested center.

        Raises:
            ValueError: If the interval is empty or out of range.
        """
        if not 0 <= si <= sj < self.length:
            msg = f"Invalid center [{si}, {sj}] for an MPS of length {self.length}."
            raise ValueError(msg)
        left, right = self.center
        if left < si:
            for site in range(left, si):
                self.shift_orthogonality_center_right(site)
            left, right = si, max(right, si)
        if right > sj:
            for site in range(right, sj, -1):
                self.shift_orthogonality_center_left(site)
            left, right = min(left, sj), sj
        self.center = [left, right]

    def set_canonical_form(self, orthogonality_center: int) -> None:
        """Sets canonical form of MPS.

        Left and right normalizes an MPS around a selected site.

        Args:
            orthogonality_center (int): site of matrix MPS around which we normalize
        """
        self.canonicalize(orthogonality_center, orthogonality_center)

    def rmul(self, x: complex) -> None:
        """Multiply the state by a scalar, only the coefficient is changed."""
        self.coefficient *= x

    def normalize(self) -> None:
        """Normalize MPS.

        Moves the orthogonality center to site 0, normalizes the tensor there and keeps only the phase of the
        coefficient.
        """
        self.set_canonical_form(0)
        tensor_norm = np.linalg.norm(self.tensors[0])
        self.tensors[0] /= tensor_norm
        if self.coefficient != 0:
            self.coefficient /= abs(self.coefficient)

    def scalar_product(self, other: MPS) -> np.complex128:
        """Compute the scalar (inner) product <self|other> between two Matrix Product States (MPS).

        The tensors are contracted site by site from left to right and multiplied with both coefficients.

        Args:
            other (MPS): The second Matrix Product State.

        Returns:
            np.complex128: The resulting scalar product as a complex number.

        Raises:
            ValueError: If the lengths differ.
        """
        if self.length != other.length:
            msg = "The lengths of both states must match."
            raise ValueError(msg)
        result = np.ones((1, 1), dtype=complex)
        for bra, ket in zip(self.tensors, other.tensors):
            result = oe.contract("ab,sac,sbd->cd", result, np.conj(bra), ket)
        return np.complex128(np.conj(self.coefficient) * other.coefficient * np.squeeze(result))

    def norm(self) -> np.float64:
        """Norm calculation.

        Returns:
            np.float64: The 2-norm of the state including the coefficient.
        """
        return np.float64(np.sqrt(abs(self.scalar_product(self))))

    def local_expect(self, operator: NDArray[np.complex128], site: int) -> np.complex128:
        """Compute the normalized expectation value of a single-site operator.

        Args:
            operator: The (d, d) operator matrix.
            site: The site the operator acts on.

        Returns:
            np.complex128: <psi|O_site|psi> / <psi|psi>.
        """
        temp_state = copy.deepcopy(self)
        temp_state.tensors[site] = oe.contract("ab, bcd->acd", operator, temp_state.tensors[site])
        return np.complex128(self.scalar_product(temp_state) / self.scalar_product(self))

    def expect(self, observable: Observable) -> np.float64:
        """Measurement of expectation value.

        Args:
            observable: The observable to measure.

        Returns:
            np.float64: The real part of the expectation value of the observable.
        """
        assert observable.site in range(self.length), f"Observable acting on non-existing site: {observable.site}"
        return np.float64(self.local_expect(observable.operator.matrix, observable.site).real)

    def check_if_valid_mps(self) -> None:
        """MPS validity check.

        Check if the current tensor network is a valid Matrix Product State (MPS).

        This method verifies that the bond dimensions between consecutive tensors
        in the network are consistent and that both boundary bonds are trivial.
        """
        assert self.tensors[0].shape[1] == 1
        right_bond = self.tensors[0].shape[2]
        for tensor in self.tensors[1::]:
            assert tensor.shape[1] == right_bond
            right_bond = tensor.shape[2]
        assert right_bond == 1

    def check_canonical_form(self) -> list[int]:
        """Checks canonical form of MPS.

        Returns every site `i` such that all sites left of `i` are left-orthogonal and all sites right of `i`
        are right-orthogonal. An empty list means the MPS is in no canonical form.

        Returns:
            list[int]: Sites that can act as the orthogonality center.
        """
        left_truth = []
        right_truth = []
        for tensor in self.tensors:
            mat = oe.contract("ijk, ijl->kl", np.conj(tensor), tensor)
            left_truth.append(np.allclose(mat, np.eye(mat.shape[0])))
            mat = oe.contract("ijk, ilk->jl", tensor, np.conj(tensor))
            right_truth.append(np.allclose(mat, np.eye(mat.shape[0])))

        return [i for i in range(self.length) if all(left_truth[:i]) and all(right_truth[i + 1 :])]

    def to_vec(self) -> NDArray[np.complex128]:
        r"""Converts the MPS to a full state vector representation.

        Site 0 is the most significant index, consistent with `MPO.to_matrix`.

        Returns:
                A one-dimensional NumPy array of length \(\prod_{\ell=1}^L d_\ell\)
                representing the state vector including the coefficient.
        """
        vec = self.tensors[0].reshape(self.tensors[0].shape[0], self.tensors[0].shape[2])
        for tensor in self.tensors[1:]:
            vec = np.tensordot(vec, tensor, axes=([-1], [1]))
            vec = vec.reshape(-1, vec.shape[-1])
        return self.coefficient * vec[:, 0]


class MPO:
    """Class representing a Matrix Product Operator (MPO) for quantum many-body systems.

    The index order is (sigma, sigma', chi_l-1, chi_l).

    Methods.
    -------
    init_ising(length: int, J: float, g: float) -> None
        Initializes the MPO for the Ising model with given parameters.
    init_identity(length: int, physical_dimension: int = 2) -> None
        Initializes the MPO as an identity operator.
    init_custom(tensors: list[NDArray[np.complex128]], transpose: bool = True) -> None
        Initializes the MPO with custom tensors.
    to_matrix() -> NDArray[np.complex128]
        Converts the MPO to a full matrix representation.
    check_if_valid_mpo() -> bool
        Checks if the MPO is valid.
    """

    def init_ising(self, length: int, J: float, g: float) -> None:  # noqa: N803
        """Ising MPO.

        Initialize H = -J sum Z_i Z_i+1 - g sum X_i as a Matrix Product Operator (MPO).
        The MPO has a 3x3 block structure at each site.

        Left boundary (1, 3, 2, 2)
        [I, -J Z, -g X]

        Inner tensor (3, 3, 2, 2)
        W = [[ I,     -J Z,  -g X ],
              [ 0,       0,     Z  ],
              [ 0,       0,     I  ]]

        Right boundary (3, 1, 2, 2)
        [-g X, Z, I]

        Args:
            length (int): The number of sites in the Ising chain.
            J (float): The coupling constant for the interaction.
            g (float): The coupling constant for the field.
        """
        physical_dimension = 2
        identity = np.eye(physical_dimension, dtype=complex)
        x = np.array([[0, 1], [1, 0]], dtype=complex)
        if length == 1:
            tensor: NDArray[np.complex128] = np.reshape(-g * x, (2, 2, 1, 1))
            self.tensors = [tensor]
            self.length = length
            self.physical_dimension = physical_dimension
            return
        z = np.array([[1, 0], [0, -1]], dtype=complex)

        left_bound = np.array([identity, -J * z, -g * x])[np.newaxis, :]

        inner = np.zeros((3, 3, physical_dimension, physical_dimension), dtype=complex)
        inner[0, 0] = identity
        inner[0, 1] = -J * z
        inner[0, 2] = -g * x
        inner[1, 2] = z
        inner[2, 2] = identity

        right_bound = np.array([[-g * x], [z], [identity]])

        self.tensors = [left_bound] + [inner] * (length - 2) + [right_bound]
        for i, tensor in enumerate(self.tensors):
            # left, right, sigma, sigma'
            self.tensors[i] = np.transpose(tensor, (2, 3, 0, 1))

        self.length = length
        self.physical_dimension = physical_dimension

    def init_identity(self, length: int, physical_dimension: int = 2) -> None:
        """Initialize identity MPO.

        Args:
            length (int): The number of sites.
            physical_dimension (int, optional): The physical dimension of the identity matrices. Default is 2.
        """
        mat = np.eye(physical_dimension, dtype=np.complex128)
        mat = np.expand_dims(mat, (2, 3))
        self.length = length
        self.physical_dimension = physical_dimension
        self.tensors = [mat.copy() for _ in range(length)]

    def init_custom(self, tensors: list[NDArray[np.complex128]], *, transpose: bool = True) -> None:
        """Custom MPO from tensors.

        Initialize the custom MPO (Matrix Product Operator) with the given tensors.

        Args:
            tensors: A list of tensors to initialize the MPO.
            transpose: If True, transpose each tensor from (left, right, sigma, sigma') to the order
                (sigma, sigma', left, right). Default is True.
        """
        self.tensors = list(tensors)
        if transpose:
            for i, tensor in enumerate(self.tensors):
                self.tensors[i] = np.transpose(tensor, (2, 3, 0, 1))
        assert self.check_if_valid_mpo(), "MPO initialized wrong"
        self.length = len(self.tensors)
        self.physical_dimension = self.tensors[0].shape[0]

    def to_matrix(self) -> NDArray[np.complex128]:
        """MPO to matrix conversion.

        Contracts the tensors from left to right, site 0 being the most significant index. The final left and
        right bonds are 1.

        Returns:
            The resulting matrix after tensor contractions and reshaping.
        """
        mat = self.tensors[0]
        for tensor in self.tensors[1:]:
            mat = oe.contract("abcd, efdg->aebfcg", mat, tensor)
            mat = np.reshape(
                mat, (mat.shape[0] * mat.shape[1], mat.shape[2] * mat.shape[3], mat.shape[4], mat.shape[5])
            )
        return np.squeeze(mat, axis=(2, 3))

    def check_if_valid_mpo(self) -> bool:
        """MPO validity check.

        Check if the current tensor network is a valid Matrix Product Operator (MPO).
        This method verifies the consistency of the bond dimensions between adjacent tensors
        in the network. Specifically, it checks that the right bond dimension of each tensor
        matches the left bond dimension of the subsequent tensor.

        Returns:
            bool: True if the tensor network is a valid MPO, False otherwise.
        """
        right_bond = self.tensors[0].shape[3]
        for tensor in self.tensors[1::]:
            assert tensor.shape[2] == right_bond
            right_bond = tensor.shape[3]
        return True
