"""
State-vector register.

Gates are applied via tensor reshaping instead of full matrix
multiplication: the state is viewed as a rank-n tensor (2×2×...×2) and
the k-qubit gate is contracted along the target axes only. This is
O(2^n × 4^k) per gate rather than O(4^n).

Qubit 0 is the most significant bit of the basis index, so the state
index of |q0 q1 ... q(n-1)⟩ is the bitstring read left to right.

Memory: ~16 bytes * 2^n (complex128) per state.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy import ndarray

from tiny_qdiff import config
from tiny_qdiff.errors import DimensionMismatch

_STATE_LABELS = "abcdefghijklmnopqrst"
_GATE_LABELS = "ABCDEFGHIJ"


class ArrayRegister:
    """
    Quantum register backed by a flat complex numpy array.

    Parameters
    ----------
    state : array-like
        Amplitudes of length 2^n. The array is copied and cast to
        ``dtype``.
    dtype : numpy dtype, optional
        Complex element type. Defaults to ``config.DEFAULT_DTYPE``.

    Example
    -------
    >>> reg = zero_state(2)
    >>> reg.apply(put(2, constant("h"), (0,)))
    >>> reg.state
    array([0.70710678+0.j, 0.        +0.j, 0.70710678+0.j, 0.        +0.j])
    """

    __slots__ = ("_data", "_n_qubits")

    def __init__(self, state, dtype=None) -> None:
        dtype = config.DEFAULT_DTYPE if dtype is None else dtype
        data = np.array(state, dtype=dtype).ravel()
        dim = data.shape[0]
        n_qubits = dim.bit_length() - 1
        if dim < 2 or 2**n_qubits != dim:
            raise ValueError(f"State length must be a power of 2 (>= 2), got {dim}")
        self._data = data
        self._n_qubits = n_qubits

    # -- Properties ---------------------------------------------------------

    @property
    def n_qubits(self) -> int:
        return self._n_qubits

    @property
    def dim(self) -> int:
        return self._data.shape[0]

    @property
    def dtype(self):
        return self._data.dtype

    @property
    def state(self) -> ndarray:
        """Flat amplitude array (not a copy)."""
        return self._data

    # -- Operations ---------------------------------------------------------

    def copy(self) -> ArrayRegister:
        """Deep copy of this register."""
        return ArrayRegister(self._data, dtype=self._data.dtype)

    def apply(self, block) -> ArrayRegister:
        """Apply ``block`` in place and return ``self`` for chaining."""
        return block.apply(self)

    def apply_matrix(self, matrix: ndarray, qubits: Sequence[int]) -> ArrayRegister:
        """Apply a 2^k × 2^k matrix on the qubits ``qubits`` in place."""
        self._data = apply_matrix(self._data, matrix, tuple(qubits), self._n_qubits)
        return self

    def inner(self, other: ArrayRegister) -> complex:
        """Complex inner product ⟨self|other⟩."""
        if other.n_qubits != self._n_qubits:
            raise DimensionMismatch(self._n_qubits, other.n_qubits)
        return complex(np.vdot(self._data, other._data))

    def fidelity(self, other: ArrayRegister) -> float:
        """State fidelity |⟨self|other⟩|²."""
        return float(abs(self.inner(other)) ** 2)

    def norm(self) -> float:
        return float(np.linalg.norm(self._data))

    def normalize(self) -> ArrayRegister:
        """Rescale to unit norm in place."""
        norm = self.norm()
        if norm == 0:
            raise ValueError("Cannot normalize a zero register")
        self._data /= norm
        return self

    def probabilities(self) -> ndarray:
        """Measurement probabilities of all basis states."""
        return np.abs(self._data) ** 2

    def check_qubits(self, n_qubits: int, what: str = "register") -> None:
        """Raise DimensionMismatch unless this register has ``n_qubits`` qubits."""
        if self._n_qubits != n_qubits:
            raise DimensionMismatch(n_qubits, self._n_qubits, what)

    def __repr__(self) -> str:
        return f"ArrayRegister(qubits={self._n_qubits}, dtype={self._data.dtype})"


def zero_state(n_qubits: int, dtype=None) -> ArrayRegister:
    """The canonical |00...0⟩ register."""
    if n_qubits < 1:
        raise ValueError(f"Need at least 1 qubit, got {n_qubits}")
    dtype = config.DEFAULT_DTYPE if dtype is None else dtype
    data = np.zeros(2**n_qubits, dtype=dtype)
    data[0] = 1.0
    return ArrayRegister(data, dtype=dtype)


def rand_state(n_qubits: int, rng: np.random.Generator | None = None,
               dtype=None) -> ArrayRegister:
    """A normalized register with Gaussian random amplitudes."""
    rng = np.random.default_rng() if rng is None else rng
    dim = 2**n_qubits
    data = rng.standard_normal(dim) + 1j * rng.standard_normal(dim)
    return ArrayRegister(data / np.linalg.norm(data), dtype=dtype)


# ---------------------------------------------------------------------------
# Kernels
# ---------------------------------------------------------------------------

def apply_matrix(state: ndarray, gate: ndarray, qubits: tuple[int, ...],
                 n: int) -> ndarray:
    """
    Apply a gate to specific qubits via tensor contraction.

    1. Reshape state into a rank-n tensor (2×2×...×2)
    2. Reshape gate into a rank-2k tensor [out..., in...]
    3. Contract along the target qubit axes
    4. Reshape back to vector

    Returns a new array; ``state`` is not modified.
    """
    k = len(qubits)
    if gate.shape != (2**k, 2**k):
        raise DimensionMismatch(k, int(np.log2(gate.shape[0])), "gate")
    if k == n and qubits == tuple(range(n)):
        return gate @ state
    if k == 1:
        return _apply_single_qubit_gate(state, gate, qubits[0], n)
    return _apply_multi_qubit_gate(state, gate, qubits, n)


def _apply_single_qubit_gate(state: ndarray, gate: ndarray, qubit: int,
                             n: int) -> ndarray:
    """Apply single-qubit gate using reshape + tensordot."""
    tensor = state.reshape([2] * n)
    tensor = np.tensordot(gate, tensor, axes=([1], [qubit]))
    tensor = np.moveaxis(tensor, 0, qubit)
    return tensor.reshape(2**n)


def _apply_multi_qubit_gate(state: ndarray, gate: ndarray,
                            qubits: tuple[int, ...], n: int) -> ndarray:
    """Apply k-qubit gate using general einsum contraction."""
    k = len(qubits)
    gate_tensor = gate.reshape([2] * (2 * k))  # [out0,..,outk-1, in0,..,ink-1]
    tensor = state.reshape([2] * n)

    state_indices = list(_STATE_LABELS[:n])
    out_labels = list(_GATE_LABELS[:k])
    in_labels = [state_indices[q] for q in qubits]

    result_indices = state_indices.copy()
    for i, q in enumerate(qubits):
        result_indices[q] = out_labels[i]

    gate_str = "".join(out_labels) + "".join(in_labels)
    einsum_str = f"{gate_str},{''.join(state_indices)}->{''.join(result_indices)}"
    tensor = np.einsum(einsum_str, gate_tensor, tensor)
    return tensor.reshape(2**n)
