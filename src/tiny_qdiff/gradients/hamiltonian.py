"""
Pauli-string Hamiltonians: the observables whose expectation values are
differentiated.

A Hamiltonian is a weighted sum of Pauli strings:
    H = c₁ P₁ + c₂ P₂ + ... + cₙ Pₙ

where each Pᵢ is a tensor product of Pauli operators {I, X, Y, Z}
and cᵢ are real coefficients. Character i of a Pauli string acts on
qubit i.

Usage:
    >>> H = Hamiltonian({"ZZ": -1.0, "XI": 0.5, "IX": 0.5})
    >>> energy = H.expectation(reg)
    >>> delta = H.apply(reg)          # cotangent H|ψ⟩ for back propagation
"""

import numpy as np
from typing import Dict, Union

from tiny_qdiff.errors import DimensionMismatch
from tiny_qdiff.register import ArrayRegister


# Pauli matrices (2x2)
_I = np.eye(2, dtype=complex)
_X = np.array([[0, 1], [1, 0]], dtype=complex)
_Y = np.array([[0, -1j], [1j, 0]], dtype=complex)
_Z = np.array([[1, 0], [0, -1]], dtype=complex)

PAULI_MAP = {"I": _I, "X": _X, "Y": _Y, "Z": _Z}


class Hamiltonian:
    """
    Pauli-string Hamiltonian for computing quantum expectation values.

    Stores a Hamiltonian as a dictionary of Pauli strings → coefficients.
    Computes ⟨ψ|H|ψ⟩ by applying each Pauli tensor product to the
    statevector and summing weighted inner products.

    Parameters
    ----------
    terms : dict
        Mapping of Pauli strings to real coefficients.
        Example: {"ZZ": -1.0, "XI": 0.5, "IX": 0.5}
        All strings must have the same length (number of qubits).
    """

    def __init__(self, terms: Dict[str, float]):
        if not terms:
            raise ValueError("Hamiltonian must have at least one term")

        self._terms = {}
        lengths = set()
        for pauli_str, coeff in terms.items():
            pauli_str = pauli_str.upper()
            lengths.add(len(pauli_str))
            if not all(c in "IXYZ" for c in pauli_str):
                raise ValueError(
                    f"Invalid Pauli string '{pauli_str}': "
                    "only I, X, Y, Z allowed"
                )
            if abs(coeff) > 1e-15:  # skip zero terms
                self._terms[pauli_str] = float(coeff)

        if len(lengths) > 1:
            raise ValueError(
                f"All Pauli strings must have the same length, "
                f"got lengths {lengths}"
            )

        self._n_qubits = lengths.pop()

    @property
    def terms(self) -> Dict[str, float]:
        """Return copy of Pauli string → coefficient mapping."""
        return dict(self._terms)

    @property
    def n_qubits(self) -> int:
        return self._n_qubits

    @property
    def n_terms(self) -> int:
        return len(self._terms)

    def _vector(self, state: Union[ArrayRegister, np.ndarray]) -> np.ndarray:
        sv = state.state if isinstance(state, ArrayRegister) else state
        sv = np.asarray(sv, dtype=complex).ravel()
        if sv.shape[0] != 2 ** self._n_qubits:
            got = sv.shape[0].bit_length() - 1
            raise DimensionMismatch(self._n_qubits, got, "state")
        return sv

    def apply(self, state: Union[ArrayRegister, np.ndarray]) -> ArrayRegister:
        """
        Return H|ψ⟩ as a new register; ``state`` is left untouched.

        This is the cotangent that seeds back propagation of ⟨ψ|H|ψ⟩.
        """
        sv = self._vector(state)
        out = np.zeros_like(sv)
        for pauli_str, coeff in self._terms.items():
            out += coeff * _apply_pauli_string(sv, pauli_str, self._n_qubits)
        dtype = state.dtype if isinstance(state, ArrayRegister) else None
        return ArrayRegister(out, dtype=dtype)

    def expectation(self, state: Union[ArrayRegister, np.ndarray]) -> float:
        """
        Compute ⟨ψ|H|ψ⟩ without building the full matrix.

        For each Pauli string P with coefficient c, computes:
            c * ⟨ψ|P|ψ⟩ = c * Re(ψ† · (P|ψ⟩))
        """
        sv = self._vector(state)
        total = 0.0
        for pauli_str, coeff in self._terms.items():
            psi = _apply_pauli_string(sv, pauli_str, self._n_qubits)
            total += coeff * np.real(np.vdot(sv, psi))
        return float(total)

    def matrix(self) -> np.ndarray:
        """
        Build the full 2^n × 2^n Hamiltonian matrix.

        Useful for small systems and validation.
        """
        dim = 2 ** self._n_qubits
        H = np.zeros((dim, dim), dtype=complex)
        for pauli_str, coeff in self._terms.items():
            H += coeff * _pauli_string_matrix(pauli_str)
        return H

    def ground_state_energy(self) -> float:
        """Exact ground state energy via diagonalization."""
        eigenvalues = np.linalg.eigvalsh(self.matrix())
        return float(eigenvalues[0])

    def __add__(self, other: "Hamiltonian") -> "Hamiltonian":
        if not isinstance(other, Hamiltonian):
            return NotImplemented
        if self._n_qubits != other._n_qubits:
            raise ValueError("Cannot add Hamiltonians with different qubit counts")
        terms = dict(self._terms)
        for pauli_str, coeff in other._terms.items():
            terms[pauli_str] = terms.get(pauli_str, 0.0) + coeff
        return Hamiltonian(terms)

    def __mul__(self, scalar: float) -> "Hamiltonian":
        return Hamiltonian({p: c * scalar for p, c in self._terms.items()})

    def __rmul__(self, scalar: float) -> "Hamiltonian":
        return self.__mul__(scalar)

    def __repr__(self) -> str:
        terms_str = " + ".join(
            f"{c:+.4f} {p}" for p, c in self._terms.items()
        )
        return f"Hamiltonian({self._n_qubits}q, {self.n_terms} terms): {terms_str}"


# ─── Standard Hamiltonians ───────────────────────────────────────────

def transverse_field_ising(n_qubits: int, J: float = 1.0,
                           h: float = 1.0) -> Hamiltonian:
    """
    Transverse-field Ising model: H = -J Σ ZᵢZᵢ₊₁ - h Σ Xᵢ
    (open boundary conditions).
    """
    terms = {}
    for i in range(n_qubits - 1):
        pauli = "I" * i + "ZZ" + "I" * (n_qubits - i - 2)
        terms[pauli] = -J
    for i in range(n_qubits):
        pauli = "I" * i + "X" + "I" * (n_qubits - i - 1)
        terms[pauli] = -h
    return Hamiltonian(terms)


def heisenberg_xyz(n_qubits: int, Jx: float = 1.0, Jy: float = 1.0,
                   Jz: float = 1.0) -> Hamiltonian:
    """Heisenberg XYZ model: H = Σ (Jx XᵢXᵢ₊₁ + Jy YᵢYᵢ₊₁ + Jz ZᵢZᵢ₊₁)"""
    terms = {}
    for i in range(n_qubits - 1):
        for pauli_char, J in [("X", Jx), ("Y", Jy), ("Z", Jz)]:
            pauli = "I" * i + pauli_char * 2 + "I" * (n_qubits - i - 2)
            terms[pauli] = J
    return Hamiltonian(terms)


# ─── Internal utilities ──────────────────────────────────────────────

def _apply_pauli_string(sv: np.ndarray, pauli_str: str,
                        n_qubits: int) -> np.ndarray:
    """
    Apply a Pauli string (tensor product of Paulis) to a statevector,
    one qubit axis at a time.
    """
    result = sv.copy()
    for qubit_idx, pauli_char in enumerate(pauli_str):
        if pauli_char == "I":
            continue
        pauli = PAULI_MAP[pauli_char]
        result = result.reshape([2] * n_qubits)
        result = np.tensordot(pauli, result, axes=([1], [qubit_idx]))
        result = np.moveaxis(result, 0, qubit_idx)
        result = result.reshape(-1)
    return result


def _pauli_string_matrix(pauli_str: str) -> np.ndarray:
    """Build the full tensor product matrix for a Pauli string."""
    result = PAULI_MAP[pauli_str[0]]
    for char in pauli_str[1:]:
        result = np.kron(result, PAULI_MAP[char])
    return result
