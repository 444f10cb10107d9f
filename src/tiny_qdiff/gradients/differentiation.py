"""
Circuit-level gradient evaluation of ⟨ψ(θ)|H|ψ(θ)⟩.

Three evaluators, one per way of obtaining ∂⟨H⟩/∂θ:

1. **Back propagation** (:func:`backpropagate`):
   One forward pass through the circuit checkpoints every
   :class:`BPDiff`; the cotangent δ = H|ψ⟩ is then walked backward,
   each BPDiff writing its own ``grad``. Cost: O(G) gate applications.

2. **Parameter-shift rule** (:func:`parameter_shift`):
   Exact, hardware-compatible, two circuit evaluations per
   :class:`QDiff`:
   ∂f/∂θ = [f(θ + π/2) − f(θ − π/2)] / 2

3. **Finite difference** (:func:`finite_difference`):
   Central difference reference over a params → circuit builder:
   ∂f/∂θᵢ ≈ [f(θᵢ + ε) − f(θᵢ − ε)] / (2ε)

Usage with scipy.optimize.minimize:
    >>> from scipy.optimize import minimize
    >>> circuit = chain(BPDiff(put(2, rot("ry", 0.0), (0,))),
    ...                 BPDiff(put(2, rot("ry", 0.0), (1,))),
    ...                 put(2, constant("cx"), (0, 1)))
    >>> H = Hamiltonian({"ZZ": -1.0, "XI": 0.5})
    >>> result = minimize(
    ...     lambda p: expectation_and_gradient(circuit, H, p),
    ...     x0=[0.1, 0.2], method="L-BFGS-B", jac=True
    ... )
"""

import logging
from typing import Callable, Iterator, Optional, Tuple, Type

import numpy as np

from tiny_qdiff import config
from tiny_qdiff.blocks import Chain, MatrixBlock, PutBlock, is_rotor
from tiny_qdiff.diff import AbstractDiff, BPDiff, QDiff, has_involutory_generator
from tiny_qdiff.errors import StructuralMismatch, UnsupportedOperator
from tiny_qdiff.register import ArrayRegister, zero_state
from .hamiltonian import Hamiltonian

logger = logging.getLogger(__name__)


# ─── Public API ──────────────────────────────────────────────────────

def expectation(circuit: MatrixBlock, hamiltonian: Hamiltonian,
                reg: Optional[ArrayRegister] = None) -> float:
    """
    Compute ⟨ψ|H|ψ⟩ with |ψ⟩ = circuit|reg⟩.

    ``reg`` defaults to |00...0⟩ and is never modified.
    """
    psi = _initial_state(circuit, reg)
    circuit.apply(psi)
    return hamiltonian.expectation(psi)


def backward(circuit: MatrixBlock, delta: ArrayRegister) -> ArrayRegister:
    """
    Walk ``delta`` backward through an already forward-applied circuit.

    Rotation BPDiff nodes run their backward step; every other block
    (including a BPDiff around a fixed gate) applies its inverse. Nested
    chains are walked recursively, last block first. ``delta`` is mutated
    in place and returned.

    Raises
    ------
    StructuralMismatch
        If the same BPDiff instance occurs more than once, since its
        single checkpoint and gradient slot cannot serve two positions.
    UnsupportedOperator
        If a BPDiff wraps a parameterized block that is not a rotation.
    """
    _check_backprop(circuit)
    return _backward(circuit, delta)


def backpropagate(circuit: MatrixBlock, hamiltonian: Hamiltonian,
                  reg: Optional[ArrayRegister] = None
                  ) -> Tuple[float, np.ndarray]:
    """
    Energy and BPDiff gradients from one forward + one backward pass.

    Returns
    -------
    tuple of (float, np.ndarray)
        (expectation_value, grads of BPDiff nodes in circuit order)
    """
    _check_backprop(circuit)
    psi = _initial_state(circuit, reg)
    circuit.apply(psi)

    energy = hamiltonian.expectation(psi)
    delta = hamiltonian.apply(psi)
    _backward(circuit, delta)

    grads = collect_grads(circuit, BPDiff)
    logger.debug("backpropagate: energy=%.6g over %d node(s)", energy, len(grads))
    return energy, grads


def parameter_shift(circuit: MatrixBlock, hamiltonian: Hamiltonian,
                    reg: Optional[ArrayRegister] = None,
                    shift: Optional[float] = None) -> np.ndarray:
    """
    Fill the ``grad`` of every QDiff in ``circuit`` by the parameter-shift rule.

    For each node with angle θ:
        grad = [f(θ + s) − f(θ − s)] / (2 sin s)

    The angle is restored afterwards. The shift rule holds per gate
    occurrence, so a QDiff instance placed at several positions is
    rejected with StructuralMismatch.

    Returns
    -------
    np.ndarray
        Grads of the QDiff nodes in circuit order.
    """
    shift = config.PARAM_SHIFT if shift is None else shift
    _check_unshared(circuit, QDiff)
    nodes = list(iter_nodes(circuit, QDiff))

    for node in nodes:
        if not has_involutory_generator(node.block):
            raise UnsupportedOperator(
                f"parameter shift needs an involutory generator, got {node!r}"
            )
        theta = node.iparameters()[0]
        try:
            node.set_iparameters(theta + shift)
            f_plus = expectation(circuit, hamiltonian, reg)
            node.set_iparameters(theta - shift)
            f_minus = expectation(circuit, hamiltonian, reg)
        finally:
            node.set_iparameters(theta)
        node.grad = (f_plus - f_minus) / (2 * np.sin(shift))

    logger.debug("parameter_shift: %d node(s), %d evaluations",
                 len(nodes), 2 * len(nodes))
    return np.array([node.grad for node in nodes], dtype=float)


def finite_difference(circuit_fn: Callable, hamiltonian: Hamiltonian,
                      params: np.ndarray, epsilon: Optional[float] = None,
                      reg: Optional[ArrayRegister] = None) -> np.ndarray:
    """
    Central finite-difference gradient (universal fallback).

    ∂f/∂θᵢ ≈ [f(θᵢ + ε) − f(θᵢ − ε)] / (2ε)

    Parameters
    ----------
    circuit_fn : callable
        Function params → circuit block.
    hamiltonian : Hamiltonian
        Observable to measure.
    params : array-like
        Parameter values θ.
    epsilon : float, optional
        Step size, ``config.FD_EPSILON`` by default.
    """
    epsilon = config.FD_EPSILON if epsilon is None else epsilon
    params = np.asarray(params, dtype=float)
    grad = np.zeros(len(params))

    for i in range(len(params)):
        params_plus = params.copy()
        params_plus[i] += epsilon

        params_minus = params.copy()
        params_minus[i] -= epsilon

        f_plus = expectation(circuit_fn(params_plus), hamiltonian, reg)
        f_minus = expectation(circuit_fn(params_minus), hamiltonian, reg)

        grad[i] = (f_plus - f_minus) / (2 * epsilon)

    return grad


def expectation_and_gradient(circuit: MatrixBlock, hamiltonian: Hamiltonian,
                             params: np.ndarray,
                             reg: Optional[ArrayRegister] = None
                             ) -> Tuple[float, np.ndarray]:
    """
    Bind ``params`` into ``circuit`` and return (energy, gradient).

    Designed for ``scipy.optimize.minimize(..., jac=True)``. Every
    parameterized block of the circuit must be wrapped in a BPDiff so
    that the gradient lines up with ``circuit.iparameters()``.
    """
    params = np.asarray(params, dtype=float)
    circuit.set_iparameters(*params)
    energy, _ = backpropagate(circuit, hamiltonian, reg)
    return energy, _parameter_grads(circuit)


def iter_nodes(circuit: MatrixBlock,
               kind: Type[AbstractDiff] = AbstractDiff) -> Iterator[AbstractDiff]:
    """Yield the differentiable nodes of type ``kind`` in circuit order."""
    if isinstance(circuit, kind):
        yield circuit
    elif isinstance(circuit, Chain):
        for blk in circuit:
            yield from iter_nodes(blk, kind)
    elif isinstance(circuit, PutBlock):
        yield from iter_nodes(circuit.block, kind)


def collect_grads(circuit: MatrixBlock,
                  kind: Type[AbstractDiff] = AbstractDiff) -> np.ndarray:
    """Scalar grads of the rotation nodes of type ``kind``, in circuit order."""
    return np.array(
        [node.grad for node in iter_nodes(circuit, kind) if is_rotor(node.block)],
        dtype=float,
    )


# ─── Internal utilities ─────────────────────────────────────────────

def _initial_state(circuit: MatrixBlock,
                   reg: Optional[ArrayRegister]) -> ArrayRegister:
    if reg is None:
        return zero_state(circuit.n_qubits, circuit.dtype)
    reg.check_qubits(circuit.n_qubits)
    return reg.copy()


def _backward(block: MatrixBlock, delta: ArrayRegister) -> ArrayRegister:
    if isinstance(block, BPDiff):
        if is_rotor(block.block) or block.n_iparameters:
            return block.backward(delta)
        return block.block.dagger().apply(delta)
    if isinstance(block, Chain):
        for blk in reversed(block.blocks):
            _backward(blk, delta)
        return delta
    return block.dagger().apply(delta)


def _check_backprop(circuit: MatrixBlock) -> None:
    _check_unshared(circuit)
    for node in iter_nodes(circuit, BPDiff):
        if node.n_iparameters and not is_rotor(node.block):
            raise UnsupportedOperator(
                f"backward is only defined for rotations, got {node.block!r}; "
                "wrap each rotation in its own BPDiff"
            )


def _check_unshared(circuit: MatrixBlock,
                    kind: Type[AbstractDiff] = BPDiff) -> None:
    nodes = list(iter_nodes(circuit, kind))
    if len({id(node) for node in nodes}) != len(nodes):
        raise StructuralMismatch(
            f"a {kind.__name__} node occurs more than once in the circuit; "
            "use one node per position"
        )


def _parameter_grads(block: MatrixBlock) -> np.ndarray:
    """Gradient aligned with ``block.iparameters()``."""
    if isinstance(block, BPDiff):
        return np.atleast_1d(np.asarray(block.grad, dtype=float))
    if isinstance(block, Chain):
        parts = [_parameter_grads(blk) for blk in block]
        return np.concatenate(parts) if parts else np.zeros(0)
    if isinstance(block, PutBlock):
        return _parameter_grads(block.block)
    if block.n_iparameters:
        raise UnsupportedOperator(
            f"{block!r} has free parameters but is not wrapped in BPDiff"
        )
    return np.zeros(0)
