"""Exceptions raised by the differentiation engine."""


class DiffError(Exception):
    """Base class for all tiny-qdiff errors."""


class StructuralMismatch(DiffError):
    """A node was used out of order (e.g. backward before any forward)."""


class UnsupportedOperator(DiffError, TypeError):
    """The operation is not defined for this kind of operator."""


class DimensionMismatch(DiffError, ValueError):
    """Register and operator disagree on the number of qubits."""

    def __init__(self, expected: int, got: int, what: str = "register"):
        self.expected = expected
        self.got = got
        super().__init__(
            f"{what} has {got} qubit(s), expected {expected}"
        )
