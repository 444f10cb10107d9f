"""
tiny-qdiff: differentiable rotation gates for variational quantum circuits.

Features:
- QDiff: mark a rotation as differentiable, grad filled by parameter shift
- BPDiff: reverse-mode back propagation through a chain of gates
- Minimal operator blocks (constant, rotation, put, chain) and a
  state-vector register to run them on

Quick Start:
    >>> from tiny_qdiff import BPDiff, Hamiltonian, chain, put, rot, constant
    >>> from tiny_qdiff.gradients import backpropagate
    >>> circuit = chain(BPDiff(put(2, rot("ry", 0.4), (0,))),
    ...                 put(2, constant("cx"), (0, 1)))
    >>> energy, grads = backpropagate(circuit, Hamiltonian({"ZZ": 1.0, "XI": 0.5}))
"""
__version__ = "0.1.0"

from .errors import DiffError, StructuralMismatch, UnsupportedOperator, DimensionMismatch
from .register import ArrayRegister, zero_state, rand_state
from .blocks import (
    MatrixBlock,
    ConstantGate,
    MatrixGate,
    RotationGate,
    PutBlock,
    Chain,
    constant,
    rot,
    put,
    chain,
    is_rotor,
)
from .diff import AbstractDiff, QDiff, BPDiff, generator, has_involutory_generator
from .gradients import Hamiltonian

__all__ = [
    # Errors
    'DiffError',
    'StructuralMismatch',
    'UnsupportedOperator',
    'DimensionMismatch',
    # Register
    'ArrayRegister',
    'zero_state',
    'rand_state',
    # Blocks
    'MatrixBlock',
    'ConstantGate',
    'MatrixGate',
    'RotationGate',
    'PutBlock',
    'Chain',
    'constant',
    'rot',
    'put',
    'chain',
    'is_rotor',
    # Differentiable tags
    'AbstractDiff',
    'QDiff',
    'BPDiff',
    'generator',
    'has_involutory_generator',
    # Observables
    'Hamiltonian',
]
