"""Tests for operator blocks and the constant gate table."""

import numpy as np
import pytest

from tiny_qdiff import (
    BPDiff,
    Chain,
    ConstantGate,
    MatrixBlock,
    MatrixGate,
    PutBlock,
    QDiff,
    RotationGate,
    UnsupportedOperator,
    chain,
    constant,
    is_rotor,
    put,
    rand_state,
    rot,
    zero_state,
)
from tiny_qdiff import gates as g


# ---------------------------------------------------------------------------
# Gate table
# ---------------------------------------------------------------------------

class TestGateTable:

    def test_pauli_flags(self):
        for name in ("x", "y", "z"):
            entry = g.lookup(name)
            assert entry["hermitian"]
            assert entry["unitary"]
            assert entry["involutory"]

    def test_phase_gate_is_not_involutory(self):
        entry = g.lookup("s")
        assert entry["unitary"]
        assert not entry["hermitian"]
        assert not entry["involutory"]

    def test_aliases(self):
        assert g.lookup("CNOT") is g.lookup("cx")
        assert g.lookup("toffoli") is g.lookup("ccx")

    def test_unknown_gate(self):
        with pytest.raises(KeyError, match="Unknown gate"):
            g.lookup("foo")

    def test_cached_matrix_is_shared_and_read_only(self):
        m = g.get_matrix("h")
        assert m is g.get_matrix("H")
        with pytest.raises(ValueError):
            m[0, 0] = 0

    def test_dtype_cast(self):
        assert g.get_matrix("x", np.complex64).dtype == np.complex64


# ---------------------------------------------------------------------------
# Primitive blocks
# ---------------------------------------------------------------------------

def test_base_block_is_abstract():
    with pytest.raises(TypeError):
        MatrixBlock(1)


class TestConstantGate:

    def test_matrix(self):
        np.testing.assert_allclose(constant("x").mat(), g.X)

    def test_n_qubits(self):
        assert constant("h").n_qubits == 1
        assert constant("cx").n_qubits == 2
        assert constant("ccx").n_qubits == 3

    def test_hermitian_dagger_is_self(self):
        h = constant("h")
        assert h.dagger() is h

    def test_phase_dagger(self):
        assert constant("s").dagger().name == "sdg"
        assert constant("tdg").dagger().name == "t"

    def test_general_dagger(self):
        sx = constant("sx")
        np.testing.assert_allclose(sx.dagger().mat() @ sx.mat(), np.eye(2), atol=1e-12)

    def test_apply(self):
        reg = constant("x").apply(zero_state(1))
        np.testing.assert_allclose(reg.state, [0, 1])


class TestMatrixGate:

    def test_permutation(self):
        perm = MatrixGate(g.SWAP, name="perm")
        assert perm.n_qubits == 2
        assert perm.is_unitary
        assert perm.n_iparameters == 0

    def test_rejects_non_square(self):
        with pytest.raises(ValueError):
            MatrixGate(np.zeros((2, 3)))

    def test_rejects_non_power_of_two(self):
        with pytest.raises(ValueError):
            MatrixGate(np.eye(3))


class TestRotationGate:

    @pytest.mark.parametrize("theta", [0.0, 0.3, np.pi / 2, 2.5, -1.1])
    def test_rx_matrix(self, theta):
        c, s = np.cos(theta / 2), np.sin(theta / 2)
        expected = np.array([[c, -1j * s], [-1j * s, c]])
        np.testing.assert_allclose(rot("rx", theta).mat(), expected, atol=1e-12)

    def test_ry_matrix(self):
        theta = 0.7
        c, s = np.cos(theta / 2), np.sin(theta / 2)
        np.testing.assert_allclose(
            rot("ry", theta).mat(), [[c, -s], [s, c]], atol=1e-12
        )

    def test_rz_matrix(self):
        phi = 1.3
        expected = np.diag([np.exp(-1j * phi / 2), np.exp(1j * phi / 2)])
        np.testing.assert_allclose(rot("z", phi).mat(), expected, atol=1e-12)

    def test_two_qubit_generator(self):
        """exp(-iθ/2 ZZ) from a ZZ generator."""
        theta = 0.9
        zz = MatrixGate(np.kron(g.Z, g.Z), name="ZZ")
        e_neg, e_pos = np.exp(-1j * theta / 2), np.exp(1j * theta / 2)
        expected = np.diag([e_neg, e_pos, e_pos, e_neg])
        r = RotationGate(zz, theta)
        assert r.is_involutory_generator
        np.testing.assert_allclose(r.mat(), expected, atol=1e-12)

    def test_non_involutory_generator_uses_expm(self):
        theta = 0.4
        r = RotationGate(MatrixGate(np.diag([1.0, 2.0])), theta)
        assert not r.is_involutory_generator
        expected = np.diag([np.exp(-0.5j * theta), np.exp(-1j * theta)])
        np.testing.assert_allclose(r.mat(), expected, atol=1e-12)

    def test_generator_must_be_hermitian(self):
        with pytest.raises(ValueError, match="not Hermitian"):
            RotationGate(MatrixGate([[0, 1], [0, 0]]), 0.1)

    def test_dagger_is_inverse(self):
        r = rot("ry", 0.8)
        np.testing.assert_allclose(r.dagger().mat() @ r.mat(), np.eye(2), atol=1e-12)
        assert r.dagger().block is r.block

    def test_parameters(self):
        r = rot("rx", 0.1)
        assert r.n_iparameters == 1
        assert r.iparameters() == (0.1,)
        r.set_iparameters(0.5)
        assert r.theta == 0.5
        with pytest.raises(ValueError, match="1 parameter"):
            r.set_iparameters(0.1, 0.2)

    def test_complex64_matrix(self):
        assert rot("rx", 0.3).mat(np.complex64).dtype == np.complex64


# ---------------------------------------------------------------------------
# Composite blocks
# ---------------------------------------------------------------------------

class TestPutBlock:

    def test_matrix_first_qubit(self):
        np.testing.assert_allclose(
            put(2, constant("x"), (0,)).mat(), np.kron(g.X, g.I), atol=1e-12
        )

    def test_matrix_last_qubit(self):
        np.testing.assert_allclose(
            put(2, constant("x"), (1,)).mat(), np.kron(g.I, g.X), atol=1e-12
        )

    def test_apply_matches_matrix(self):
        blk = put(3, rot("ry", 0.6), (2,))
        reg = rand_state(3, rng=np.random.default_rng(1))
        expected = blk.mat() @ reg.state
        np.testing.assert_allclose(blk.apply(reg).state, expected, atol=1e-12)

    def test_reversed_addresses(self):
        """Control on q1: |01⟩ → |11⟩."""
        reg = put(2, constant("x"), (1,)).apply(zero_state(2))
        put(2, constant("cx"), (1, 0)).apply(reg)
        np.testing.assert_allclose(reg.state, [0, 0, 0, 1], atol=1e-12)

    def test_validation(self):
        with pytest.raises(ValueError, match="address"):
            put(2, constant("cx"), (0,))
        with pytest.raises(ValueError, match="out of range"):
            put(2, constant("x"), (2,))
        with pytest.raises(ValueError, match="Duplicate"):
            put(3, constant("cx"), (1, 1))

    def test_rejects_bpdiff_content(self):
        with pytest.raises(UnsupportedOperator, match="must wrap the put"):
            put(2, BPDiff(rot("rx", 0.3)), (0,))
        with pytest.raises(UnsupportedOperator):
            put(2, chain(constant("h"), BPDiff(rot("rx", 0.3))), (1,))

    def test_accepts_qdiff_content(self):
        blk = put(2, QDiff(rot("rx", 0.3)), (0,))
        np.testing.assert_allclose(
            blk.mat(), put(2, rot("rx", 0.3), (0,)).mat(), atol=1e-12
        )

    def test_forwards_parameters_and_flags(self):
        blk = put(2, rot("rx", 0.2), (1,))
        assert blk.n_iparameters == 1
        blk.set_iparameters(0.7)
        assert blk.block.theta == 0.7
        assert put(2, constant("z"), (0,)).is_involutory

    def test_dagger_keeps_addresses(self):
        blk = put(3, rot("rx", 0.2), (1,))
        dag = blk.dagger()
        assert isinstance(dag, PutBlock)
        assert dag.addrs == (1,)
        np.testing.assert_allclose(dag.mat() @ blk.mat(), np.eye(8), atol=1e-12)


class TestChain:

    def _circuit(self):
        return chain(
            put(2, constant("h"), (0,)),
            put(2, constant("cx"), (0, 1)),
            put(2, rot("ry", 0.3), (1,)),
            put(2, constant("s"), (0,)),
        )

    def test_matrix_is_ordered_product(self):
        c = self._circuit()
        expected = np.eye(4)
        for blk in c:
            expected = blk.mat() @ expected
        np.testing.assert_allclose(c.mat(), expected, atol=1e-12)

    def test_apply_matches_matrix(self):
        c = self._circuit()
        reg = rand_state(2, rng=np.random.default_rng(2))
        expected = c.mat() @ reg.state
        np.testing.assert_allclose(c.apply(reg).state, expected, atol=1e-12)

    def test_dagger_inverts(self):
        c = self._circuit()
        np.testing.assert_allclose(c.dagger().mat() @ c.mat(), np.eye(4), atol=1e-12)

    def test_width_mismatch(self):
        with pytest.raises(ValueError, match="Cannot chain"):
            Chain(2, constant("x"))

    def test_builder_style(self):
        c = Chain(1).append(constant("h")).append(constant("z"))
        assert len(c) == 2
        assert isinstance(c[0], ConstantGate)

    def test_empty_chain_needs_width(self):
        with pytest.raises(ValueError):
            chain()
        assert chain(n_qubits=2).n_qubits == 2

    def test_parameters_round_trip(self):
        c = chain(rot("rx", 0.1), constant("h"), rot("rz", 0.2))
        assert c.n_iparameters == 2
        assert c.iparameters() == (0.1, 0.2)
        c.set_iparameters(1.0, 2.0)
        assert c[0].theta == 1.0
        assert c[2].theta == 2.0


def test_is_rotor():
    assert is_rotor(rot("rx", 0.1))
    assert is_rotor(put(3, rot("rx", 0.1), (2,)))
    assert not is_rotor(constant("x"))
    assert not is_rotor(put(2, constant("x"), (0,)))
    assert not is_rotor(chain(rot("rx", 0.1)))
