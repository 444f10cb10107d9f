"""
Differentiable blocks.

Two tags mark a block as differentiable. Both are transparent 1:1
wrappers: dimension, dtype and matrix are those of the wrapped block.

1. :class:`QDiff`: marker only. Holds a ``grad`` slot that an external
   evaluator (the parameter-shift rule) writes into.

2. :class:`BPDiff`: reverse mode. ``apply`` runs the block forward and
   checkpoints the output state; ``backward`` consumes a cotangent state
   δ, writes the gradient of the rotation angle and hands back
   U†δ for the previous block in the chain.

The cotangent is the Wirtinger gradient ∂L/∂⟨ψ| of the real loss. For
an energy L = ⟨ψ|H|ψ⟩ that is simply δ = H|ψ⟩, and the generator rule

    ∂L/∂θ = 2 Re⟨δ| ∂U/∂θ |ψ_in⟩ = Re(i ⟨G ψ_out|δ⟩)

holds for U = exp(-iθ/2·G) with G·G = I, using ∂U/∂θ = -(i/2)·G·U.

``dagger()`` always means the mathematical inverse. A BPDiff refuses it;
backward stepping is only reachable through ``backward``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import numpy as np
from numpy import ndarray

from tiny_qdiff.blocks import MatrixBlock, PutBlock, RotationGate, is_rotor
from tiny_qdiff.errors import StructuralMismatch, UnsupportedOperator
from tiny_qdiff.register import ArrayRegister, zero_state

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Generator extraction
# ---------------------------------------------------------------------------

def generator(rot: MatrixBlock) -> MatrixBlock:
    """
    Return the generator of a rotation block.

    For a rotation embedded by a put block, the generator is re-embedded
    at the same addresses so it can act on the full register directly.
    """
    if isinstance(rot, RotationGate):
        return rot.block
    if isinstance(rot, PutBlock) and isinstance(rot.block, RotationGate):
        return PutBlock(rot.n_qubits, rot.block.block, rot.addrs)
    raise UnsupportedOperator(f"{rot!r} is not a rotation block")


def has_involutory_generator(rot: MatrixBlock) -> bool:
    """True for a rotation block whose generator squares to the identity."""
    if not is_rotor(rot):
        return False
    inner = rot.block if isinstance(rot, PutBlock) else rot
    return inner.is_involutory_generator


# ---------------------------------------------------------------------------
# Common interface
# ---------------------------------------------------------------------------

class AbstractDiff(MatrixBlock, ABC):
    """Transparent wrapper marking ``block`` as differentiable."""

    block: MatrixBlock
    grad: float | ndarray

    @property
    def n_qubits(self) -> int:
        return self.block.n_qubits

    @property
    def dtype(self):
        return self.block.dtype

    def parent(self) -> MatrixBlock:
        """The wrapped block itself."""
        return self.block

    def mat(self, dtype=None) -> ndarray:
        return self.block.mat(dtype)

    @abstractmethod
    def apply(self, reg: ArrayRegister) -> ArrayRegister:
        ...

    @abstractmethod
    def dagger(self) -> MatrixBlock:
        ...

    @abstractmethod
    def with_block(self, block: MatrixBlock) -> AbstractDiff:
        """A fresh tag of the same kind around another block."""

    @property
    def n_iparameters(self) -> int:
        return self.block.n_iparameters

    def iparameters(self) -> tuple[float, ...]:
        return self.block.iparameters()

    def set_iparameters(self, *values: float) -> AbstractDiff:
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


# ---------------------------------------------------------------------------
# Marker tag
# ---------------------------------------------------------------------------

class QDiff(AbstractDiff):
    """
    Mark a rotation block as quantum differentiable.

    The tag does no arithmetic on ``grad``; it only gives an external
    evaluator a stable, per-instance place to store the result.
    """

    def __init__(self, block: MatrixBlock) -> None:
        if not is_rotor(block):
            raise UnsupportedOperator(f"QDiff needs a rotation block, got {block!r}")
        self.block = block
        self.grad = 0.0

    def apply(self, reg: ArrayRegister) -> ArrayRegister:
        return self.block.apply(reg)

    def dagger(self) -> QDiff:
        return QDiff(self.block.dagger())

    def with_block(self, block: MatrixBlock) -> QDiff:
        return QDiff(block)

    def __repr__(self) -> str:
        return f"[̂∂] {self.block!r}"


# ---------------------------------------------------------------------------
# Back-propagation tag
# ---------------------------------------------------------------------------

class BPDiff(AbstractDiff):
    """
    Mark a block as differentiable by back propagation.

    Parameters
    ----------
    block : MatrixBlock
        Block to wrap. Any block can be run forward; only rotation
        blocks with an involutory generator support :meth:`backward`.
    output : ArrayRegister, optional
        Initial checkpoint. When omitted a zero state is allocated, but
        it does not count as a checkpoint until the first :meth:`apply`.
    grad : float or ndarray, optional
        Initial gradient. Defaults to ``0.0`` for a rotation block and to
        a zero vector of length ``n_iparameters`` otherwise.
    """

    def __init__(self, block: MatrixBlock, output: ArrayRegister | None = None,
                 grad: float | ndarray | None = None) -> None:
        self.block = block
        if output is None:
            self._output = zero_state(block.n_qubits, block.dtype)
            self._has_output = False
        else:
            output.check_qubits(block.n_qubits, "checkpoint")
            self._output = output
            self._has_output = True
        if grad is None:
            grad = 0.0 if is_rotor(block) else np.zeros(block.n_iparameters)
        self.grad = grad

    @property
    def output(self) -> ArrayRegister:
        """State saved by the last forward :meth:`apply`."""
        if not self._has_output:
            raise StructuralMismatch(
                f"{self!r} has no checkpoint: apply it before reading output"
            )
        return self._output

    def apply(self, reg: ArrayRegister) -> ArrayRegister:
        """Forward step: apply the block and checkpoint the result."""
        self.block.apply(reg)
        self._output = reg.copy()
        self._has_output = True
        logger.debug("forward %r", self)
        return reg

    def backward(self, delta: ArrayRegister) -> ArrayRegister:
        """
        Backward step over the cotangent ``delta``.

        Overwrites ``grad`` with Re(i⟨G·output|δ⟩), then applies the
        block's inverse to ``delta`` in place and returns it. Nothing is
        mutated if a precondition fails.

        Raises
        ------
        StructuralMismatch
            If the block was never applied forward.
        UnsupportedOperator
            If the block is not a rotation with an involutory generator.
        DimensionMismatch
            If ``delta`` has the wrong number of qubits.
        """
        if not self._has_output:
            raise StructuralMismatch(f"backward on {self!r} before any forward apply")
        if not is_rotor(self.block):
            raise UnsupportedOperator(f"backward is only defined for rotations, got {self.block!r}")
        if not has_involutory_generator(self.block):
            raise UnsupportedOperator(
                f"backward needs an involutory generator, got {generator(self.block)!r}"
            )
        delta.check_qubits(self.n_qubits, "cotangent")

        g = self._output.copy().apply(generator(self.block))
        # grad reads delta before the inverse below overwrites it
        self.grad = float(np.real(1j * g.inner(delta)))
        self.block.dagger().apply(delta)
        logger.debug("backward %r grad=%.6g", self, self.grad)
        return delta

    def dagger(self) -> MatrixBlock:
        raise UnsupportedOperator(
            "BPDiff has no structural adjoint; use backward() for the reverse pass"
        )

    def with_block(self, block: MatrixBlock) -> BPDiff:
        return BPDiff(block)

    def __repr__(self) -> str:
        return f"[∂] {self.block!r}"
