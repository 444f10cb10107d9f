"""
Constant gate table.

Fixed gates are stored once as numpy matrices together with the
structural flags the differentiation engine relies on (hermitian,
unitary, involutory). Blocks built from this table share the cached
matrix instead of re-allocating it.

Gate categories:
    - Single-qubit: I, X, Y, Z, H, S, Sdg, T, Tdg, SX
    - Two-qubit: CNOT/CX, CZ, SWAP, iSWAP
    - Three-qubit: CCX (Toffoli), CSWAP (Fredkin)

Rotation gates are not stored here; they are built from a generator by
:class:`tiny_qdiff.blocks.RotationGate`. ``ROTATION_GENERATORS`` maps the
usual rotation names to the table entry used as their generator.
"""

from __future__ import annotations

import numpy as np
from numpy import ndarray

from tiny_qdiff import config

# Type alias
Matrix = ndarray

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
_SQRT2_INV = 1.0 / np.sqrt(2.0)

# ---------------------------------------------------------------------------
# Single-qubit fixed gates
# ---------------------------------------------------------------------------

I = np.eye(2, dtype=np.complex128)
"""Identity gate."""

X = np.array([[0, 1], [1, 0]], dtype=np.complex128)
"""Pauli-X (NOT) gate."""

Y = np.array([[0, -1j], [1j, 0]], dtype=np.complex128)
"""Pauli-Y gate."""

Z = np.array([[1, 0], [0, -1]], dtype=np.complex128)
"""Pauli-Z gate."""

H = np.array([[1, 1], [1, -1]], dtype=np.complex128) * _SQRT2_INV
"""Hadamard gate."""

S = np.array([[1, 0], [0, 1j]], dtype=np.complex128)
"""S (phase) gate: sqrt(Z)."""

Sdg = np.array([[1, 0], [0, -1j]], dtype=np.complex128)
"""S-dagger gate."""

T = np.array([[1, 0], [0, np.exp(1j * np.pi / 4)]], dtype=np.complex128)
"""T gate: sqrt(S)."""

Tdg = np.array([[1, 0], [0, np.exp(-1j * np.pi / 4)]], dtype=np.complex128)
"""T-dagger gate."""

SX = np.array([[1 + 1j, 1 - 1j], [1 - 1j, 1 + 1j]], dtype=np.complex128) * 0.5
"""sqrt(X) gate."""

# ---------------------------------------------------------------------------
# Multi-qubit fixed gates
# ---------------------------------------------------------------------------

CNOT = np.array(
    [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 0, 1], [0, 0, 1, 0]],
    dtype=np.complex128,
)
"""Controlled-NOT (CX) gate."""
CX = CNOT  # alias

CZ = np.diag([1, 1, 1, -1]).astype(np.complex128)
"""Controlled-Z gate."""

SWAP = np.array(
    [[1, 0, 0, 0], [0, 0, 1, 0], [0, 1, 0, 0], [0, 0, 0, 1]],
    dtype=np.complex128,
)
"""SWAP gate."""

iSWAP = np.array(
    [[1, 0, 0, 0], [0, 0, 1j, 0], [0, 1j, 0, 0], [0, 0, 0, 1]],
    dtype=np.complex128,
)
"""iSWAP gate."""

CCX = np.eye(8, dtype=np.complex128)
CCX[6, 6] = 0
CCX[7, 7] = 0
CCX[6, 7] = 1
CCX[7, 6] = 1
"""Toffoli (CCX) gate."""

CSWAP = np.eye(8, dtype=np.complex128)
CSWAP[5, 5] = 0
CSWAP[6, 6] = 0
CSWAP[5, 6] = 1
CSWAP[6, 5] = 1
"""Fredkin (CSWAP) gate."""


# ---------------------------------------------------------------------------
# Matrix predicates
# ---------------------------------------------------------------------------

def is_unitary(m: Matrix, tol: float | None = None) -> bool:
    """Check U†U = I."""
    tol = config.ATOL if tol is None else tol
    return bool(np.allclose(m.conj().T @ m, np.eye(len(m)), atol=tol))


def is_hermitian(m: Matrix, tol: float | None = None) -> bool:
    """Check M = M†."""
    tol = config.ATOL if tol is None else tol
    return bool(np.allclose(m, m.conj().T, atol=tol))


def is_involutory(m: Matrix, tol: float | None = None) -> bool:
    """Check M·M = I."""
    tol = config.ATOL if tol is None else tol
    return bool(np.allclose(m @ m, np.eye(len(m)), atol=tol))


def _entry(matrix: Matrix) -> dict:
    n_qubits = int(np.log2(matrix.shape[0]))
    matrix.setflags(write=False)
    return {
        "matrix": matrix,
        "n_qubits": n_qubits,
        "hermitian": is_hermitian(matrix),
        "unitary": is_unitary(matrix),
        "involutory": is_involutory(matrix),
    }


# ---------------------------------------------------------------------------
# Gate metadata registry
# ---------------------------------------------------------------------------

GATE_REGISTRY: dict[str, dict] = {
    "i": _entry(I),
    "x": _entry(X),
    "y": _entry(Y),
    "z": _entry(Z),
    "h": _entry(H),
    "s": _entry(S),
    "sdg": _entry(Sdg),
    "t": _entry(T),
    "tdg": _entry(Tdg),
    "sx": _entry(SX),
    "cx": _entry(CNOT),
    "cz": _entry(CZ),
    "swap": _entry(SWAP),
    "iswap": _entry(iSWAP),
    "ccx": _entry(CCX),
    "cswap": _entry(CSWAP),
}

_ALIASES = {"cnot": "cx", "toffoli": "ccx", "fredkin": "cswap"}

ROTATION_GENERATORS: dict[str, str] = {
    "rx": "x",
    "ry": "y",
    "rz": "z",
}


def lookup(name: str) -> dict:
    """
    Look up a registry entry by (case-insensitive) gate name.

    Raises
    ------
    KeyError
        If gate name is not found.
    """
    key = name.lower()
    key = _ALIASES.get(key, key)
    if key not in GATE_REGISTRY:
        raise KeyError(
            f"Unknown gate: '{name}'. Available: {sorted(GATE_REGISTRY.keys())}"
        )
    return GATE_REGISTRY[key]


def get_matrix(name: str, dtype=None) -> Matrix:
    """Return the cached matrix of a constant gate, cast to ``dtype`` if given."""
    matrix = lookup(name)["matrix"]
    if dtype is None or np.dtype(dtype) == matrix.dtype:
        return matrix
    return matrix.astype(dtype)
