"""
Circuit-level gradients of quantum expectation values.

Provides three ways of computing ∂⟨ψ(θ)|H|ψ(θ)⟩/∂θ:
- Back propagation through BPDiff nodes (one forward + one backward pass)
- Parameter-shift rule, written into QDiff nodes
- Finite-difference (reference)

Quick start:
    >>> from tiny_qdiff.gradients import Hamiltonian, backpropagate
    >>> H = Hamiltonian({"ZZ": -1.0, "XI": 0.5})
    >>> energy, grads = backpropagate(circuit, H)
"""

from .hamiltonian import (
    Hamiltonian,
    transverse_field_ising,
    heisenberg_xyz,
)
from .differentiation import (
    expectation,
    backward,
    backpropagate,
    parameter_shift,
    finite_difference,
    expectation_and_gradient,
    iter_nodes,
    collect_grads,
)

__all__ = [
    "Hamiltonian",
    "transverse_field_ising",
    "heisenberg_xyz",
    "expectation",
    "backward",
    "backpropagate",
    "parameter_shift",
    "finite_difference",
    "expectation_and_gradient",
    "iter_nodes",
    "collect_grads",
]
