"""
Operator blocks.

A block is a linear operator on a fixed number of qubits that can
materialize its matrix and apply itself to an :class:`ArrayRegister`.
The closed set of concrete blocks is:

- :class:`ConstantGate`: a named entry of the constant gate table
- :class:`MatrixGate`: any fixed matrix (e.g. a permutation)
- :class:`RotationGate`: exp(-iθ/2·G) for a Hermitian generator G
- :class:`PutBlock`: a smaller block embedded at given addresses
- :class:`Chain`: sequential composition

Example
-------
>>> from tiny_qdiff.blocks import chain, put, rot, constant
>>> circuit = chain(put(2, constant("h"), (0,)), put(2, rot("x", 0.3), (1,)))
>>> circuit.apply(zero_state(2))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Sequence

import numpy as np
from numpy import ndarray
from scipy.linalg import expm

from tiny_qdiff import config
from tiny_qdiff import gates as g
from tiny_qdiff.errors import UnsupportedOperator
from tiny_qdiff.register import ArrayRegister, apply_matrix


# ---------------------------------------------------------------------------
# Base block
# ---------------------------------------------------------------------------

class MatrixBlock(ABC):
    """
    Base class for operators acting on ``n_qubits`` qubits.

    Subclasses implement :meth:`mat`; the default :meth:`apply` contracts
    that matrix with the whole register, and the default :meth:`dagger`
    returns the conjugate transpose as a :class:`MatrixGate`.
    """

    def __init__(self, n_qubits: int, dtype=None) -> None:
        if n_qubits < 1:
            raise ValueError(f"Need at least 1 qubit, got {n_qubits}")
        self.n_qubits = n_qubits
        self.dtype = np.dtype(config.DEFAULT_DTYPE if dtype is None else dtype)

    @abstractmethod
    def mat(self, dtype=None) -> ndarray:
        """Dense matrix of this block, cast to ``dtype`` if given."""

    def apply(self, reg: ArrayRegister) -> ArrayRegister:
        """Apply this block to ``reg`` in place and return ``reg``."""
        reg.check_qubits(self.n_qubits)
        return reg.apply_matrix(self.mat(reg.dtype), range(self.n_qubits))

    def dagger(self) -> MatrixBlock:
        """A new block for the Hermitian conjugate (the inverse, if unitary)."""
        return MatrixGate(self.mat().conj().T, name=f"{self}†")

    # -- Parameters ---------------------------------------------------------

    @property
    def n_iparameters(self) -> int:
        """Number of free (intrinsic) real parameters."""
        return 0

    def iparameters(self) -> tuple[float, ...]:
        return ()

    def set_iparameters(self, *values: float) -> MatrixBlock:
        if len(values) != self.n_iparameters:
            raise ValueError(
                f"{type(self).__name__} takes {self.n_iparameters} "
                f"parameter(s), got {len(values)}"
            )
        return self

    # -- Flags --------------------------------------------------------------

    @property
    def is_hermitian(self) -> bool:
        return g.is_hermitian(self.mat())

    @property
    def is_unitary(self) -> bool:
        return g.is_unitary(self.mat())

    @property
    def is_involutory(self) -> bool:
        return g.is_involutory(self.mat())


# ---------------------------------------------------------------------------
# Primitive blocks
# ---------------------------------------------------------------------------

class ConstantGate(MatrixBlock):
    """A gate from the constant table, sharing its cached matrix and flags."""

    _DAGGERS = {"s": "sdg", "sdg": "s", "t": "tdg", "tdg": "t"}

    def __init__(self, name: str, dtype=None) -> None:
        entry = g.lookup(name)
        super().__init__(entry["n_qubits"], dtype)
        self.name = name.lower()
        self._entry = entry

    def mat(self, dtype=None) -> ndarray:
        return g.get_matrix(self.name, self.dtype if dtype is None else dtype)

    def dagger(self) -> MatrixBlock:
        if self._entry["hermitian"]:
            return self
        if self.name in self._DAGGERS:
            return ConstantGate(self._DAGGERS[self.name], self.dtype)
        return super().dagger()

    @property
    def is_hermitian(self) -> bool:
        return self._entry["hermitian"]

    @property
    def is_unitary(self) -> bool:
        return self._entry["unitary"]

    @property
    def is_involutory(self) -> bool:
        return self._entry["involutory"]

    def __repr__(self) -> str:
        return self.name.upper()


class MatrixGate(MatrixBlock):
    """A fixed operator given by an explicit 2^n × 2^n matrix."""

    def __init__(self, matrix, name: str = "matrix", dtype=None) -> None:
        matrix = np.asarray(matrix)
        dim = matrix.shape[0]
        n_qubits = dim.bit_length() - 1
        if matrix.shape != (dim, dim) or dim < 2 or 2**n_qubits != dim:
            raise ValueError(
                f"Matrix must be square with power-of-2 size, got {matrix.shape}"
            )
        super().__init__(n_qubits, dtype)
        self._matrix = matrix.astype(self.dtype)
        self.name = name

    def mat(self, dtype=None) -> ndarray:
        if dtype is None or np.dtype(dtype) == self._matrix.dtype:
            return self._matrix
        return self._matrix.astype(dtype)

    def __repr__(self) -> str:
        return self.name


class RotationGate(MatrixBlock):
    """
    Single-parameter rotation exp(-iθ/2·G).

    Parameters
    ----------
    block : MatrixBlock
        Hermitian generator G.
    theta : float
        Rotation angle.

    For an involutory generator (G·G = I) the matrix is evaluated in
    closed form as cos(θ/2)·I − i·sin(θ/2)·G. Other Hermitian generators
    go through ``scipy.linalg.expm``.
    """

    def __init__(self, block: MatrixBlock, theta: float = 0.0) -> None:
        if not block.is_hermitian:
            raise ValueError(f"Generator {block!r} is not Hermitian")
        super().__init__(block.n_qubits, block.dtype)
        self.block = block
        self.theta = float(theta)
        self._involutory = block.is_involutory

    @property
    def is_involutory_generator(self) -> bool:
        return self._involutory

    def mat(self, dtype=None) -> ndarray:
        dtype = self.dtype if dtype is None else dtype
        G = self.block.mat(np.complex128)
        if self._involutory:
            c = np.cos(self.theta / 2)
            s = np.sin(self.theta / 2)
            m = c * np.eye(G.shape[0]) - 1j * s * G
        else:
            m = expm(-0.5j * self.theta * G)
        return m.astype(dtype)

    def dagger(self) -> RotationGate:
        return RotationGate(self.block, -self.theta)

    @property
    def n_iparameters(self) -> int:
        return 1

    def iparameters(self) -> tuple[float, ...]:
        return (self.theta,)

    def set_iparameters(self, *values: float) -> RotationGate:
        super().set_iparameters(*values)
        self.theta = float(values[0])
        return self

    @property
    def is_hermitian(self) -> bool:
        return g.is_hermitian(self.mat())

    @property
    def is_unitary(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Rot({self.block!r}, {self.theta:.6g})"


# ---------------------------------------------------------------------------
# Composite blocks
# ---------------------------------------------------------------------------

class PutBlock(MatrixBlock):
    """
    Embed a k-qubit ``block`` into an n-qubit register at ``addrs``.

    The i-th qubit of ``block`` acts on register qubit ``addrs[i]``.
    A BPDiff cannot be embedded, since the put contracts its matrix
    directly and the node would never checkpoint. Wrap the put instead:
    ``BPDiff(put(n, block, addrs))``.
    """

    def __init__(self, n_qubits: int, block: MatrixBlock,
                 addrs: Sequence[int]) -> None:
        if _contains_bpdiff(block):
            raise UnsupportedOperator(
                f"cannot embed {block!r}: a BPDiff must wrap the put block, "
                "as in BPDiff(put(n, block, addrs))"
            )
        super().__init__(n_qubits, block.dtype)
        addrs = tuple(int(a) for a in addrs)
        if len(addrs) != block.n_qubits:
            raise ValueError(
                f"{block!r} acts on {block.n_qubits} qubit(s), "
                f"got {len(addrs)} address(es)"
            )
        for a in addrs:
            if not 0 <= a < n_qubits:
                raise ValueError(f"Qubit {a} out of range for {n_qubits}-qubit block")
        if len(set(addrs)) != len(addrs):
            raise ValueError(f"Duplicate qubits in {addrs}")
        self.block = block
        self.addrs = addrs

    def mat(self, dtype=None) -> ndarray:
        dtype = self.dtype if dtype is None else dtype
        sub = self.block.mat(dtype)
        dim = 2**self.n_qubits
        columns = [
            apply_matrix(col, sub, self.addrs, self.n_qubits)
            for col in np.eye(dim, dtype=dtype)
        ]
        return np.stack(columns, axis=1)

    def apply(self, reg: ArrayRegister) -> ArrayRegister:
        reg.check_qubits(self.n_qubits)
        return reg.apply_matrix(self.block.mat(reg.dtype), self.addrs)

    def dagger(self) -> PutBlock:
        return PutBlock(self.n_qubits, self.block.dagger(), self.addrs)

    @property
    def n_iparameters(self) -> int:
        return self.block.n_iparameters

    def iparameters(self) -> tuple[float, ...]:
        return self.block.iparameters()

    def set_iparameters(self, *values: float) -> PutBlock:
        self.block.set_iparameters(*values)
        return self

    @property
    def is_hermitian(self) -> bool:
        return self.block.is_hermitian

    @property
    def is_unitary(self) -> bool:
        return self.block.is_unitary

    @property
    def is_involutory(self) -> bool:
        return self.block.is_involutory

    def __repr__(self) -> str:
        return f"put({self.n_qubits}, {self.block!r} @ {self.addrs})"


class Chain(MatrixBlock):
    """
    Sequential composition: blocks are applied first to last.

    Supports builder-style appending::

        >>> c = Chain(2).append(put(2, constant("h"), (0,)))
    """

    def __init__(self, n_qubits: int, *blocks: MatrixBlock) -> None:
        super().__init__(n_qubits)
        self._blocks: list[MatrixBlock] = []
        for blk in blocks:
            self.append(blk)

    def append(self, block: MatrixBlock) -> Chain:
        """Add a block at the end and return self for chaining."""
        if block.n_qubits != self.n_qubits:
            raise ValueError(
                f"Cannot chain a {block.n_qubits}-qubit block into a "
                f"{self.n_qubits}-qubit chain"
            )
        self._blocks.append(block)
        return self

    @property
    def blocks(self) -> list[MatrixBlock]:
        return list(self._blocks)

    def __iter__(self) -> Iterator[MatrixBlock]:
        return iter(self._blocks)

    def __len__(self) -> int:
        return len(self._blocks)

    def __getitem__(self, index: int) -> MatrixBlock:
        return self._blocks[index]

    def mat(self, dtype=None) -> ndarray:
        dtype = self.dtype if dtype is None else dtype
        m = np.eye(2**self.n_qubits, dtype=dtype)
        for blk in self._blocks:
            m = blk.mat(dtype) @ m
        return m

    def apply(self, reg: ArrayRegister) -> ArrayRegister:
        reg.check_qubits(self.n_qubits)
        for blk in self._blocks:
            blk.apply(reg)
        return reg

    def dagger(self) -> Chain:
        return Chain(self.n_qubits, *[blk.dagger() for blk in reversed(self._blocks)])

    @property
    def n_iparameters(self) -> int:
        return sum(blk.n_iparameters for blk in self._blocks)

    def iparameters(self) -> tuple[float, ...]:
        params: tuple[float, ...] = ()
        for blk in self._blocks:
            params += tuple(blk.iparameters())
        return params

    def set_iparameters(self, *values: float) -> Chain:
        super().set_iparameters(*values)
        pos = 0
        for blk in self._blocks:
            k = blk.n_iparameters
            if k:
                blk.set_iparameters(*values[pos:pos + k])
                pos += k
        return self

    @property
    def is_unitary(self) -> bool:
        return all(blk.is_unitary for blk in self._blocks)

    def __repr__(self) -> str:
        inner = ", ".join(repr(blk) for blk in self._blocks)
        return f"chain({self.n_qubits}; {inner})"


# ---------------------------------------------------------------------------
# Constructors and capability checks
# ---------------------------------------------------------------------------

def constant(name: str, dtype=None) -> ConstantGate:
    """Block for a named constant gate (``"x"``, ``"h"``, ``"cx"``, ...)."""
    return ConstantGate(name, dtype)


def rot(generator: MatrixBlock | str, theta: float = 0.0) -> RotationGate:
    """
    Rotation about ``generator``.

    ``generator`` may be a block or a gate name; the names ``"rx"``,
    ``"ry"`` and ``"rz"`` resolve to the Pauli generators.
    """
    if isinstance(generator, str):
        name = g.ROTATION_GENERATORS.get(generator.lower(), generator)
        generator = ConstantGate(name)
    return RotationGate(generator, theta)


def put(n_qubits: int, block: MatrixBlock, addrs: Sequence[int]) -> PutBlock:
    return PutBlock(n_qubits, block, addrs)


def chain(*blocks: MatrixBlock, n_qubits: int | None = None) -> Chain:
    """Sequential chain; the width is taken from the first block if not given."""
    if n_qubits is None:
        if not blocks:
            raise ValueError("Cannot infer the width of an empty chain")
        n_qubits = blocks[0].n_qubits
    return Chain(n_qubits, *blocks)


def is_rotor(block: MatrixBlock) -> bool:
    """True for a rotation gate, bare or embedded by a put block."""
    if isinstance(block, RotationGate):
        return True
    return isinstance(block, PutBlock) and isinstance(block.block, RotationGate)


def _contains_bpdiff(block: MatrixBlock) -> bool:
    from tiny_qdiff.diff import BPDiff

    if isinstance(block, BPDiff):
        return True
    if isinstance(block, Chain):
        return any(_contains_bpdiff(blk) for blk in block)
    return False
