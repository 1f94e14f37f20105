import unittest
from unittest import mock

import numpy as np
import sympy as sp
from scipy import sparse

from crnkit.CRN.core import ReactionNetwork
from crnkit.CRN.exceptions import (
    ConservationLawOverflowError,
    StructuralPreconditionError,
)
from crnkit.CRN.Props import conservation
from crnkit.CRN.Props.conservation import (
    GAMMA,
    check_conserved_initial_conditions,
    conservation_law_constants,
    conservation_laws,
    conservation_laws_from_matrix,
    conserved_equations,
    conserved_quantities,
    integer_nullspace,
    stoichiometric_rank,
)
from crnkit.CRN.Props.stoich import stoichiometric_matrix


def build_binding() -> ReactionNetwork:
    """A + B <-> C"""
    return ReactionNetwork.from_mappings(
        [(["A", "B"], "C", "k1"), ("C", ["A", "B"], "k2")]
    )


def build_mixed() -> ReactionNetwork:
    """Network with three conservation laws over ten species."""
    return ReactionNetwork.from_mappings(
        [
            (["A", "B"], "C", 1),
            ("C", ["A", "B"], 2),
            ("D", "E", 3),
            ("E", "D", 2),
            ("E", "F", 0.1),
            ("F", "E", 0.2),
            ("F", "G", 6),
            ("H", "G", 7),
            (None, "K", 5),
            (["A", "B"], ["Z", "C"], 3),
        ],
        species=["A", "B", "C", "D", "E", "F", "G", "H", "K", "Z"],
    )


# ---------------------------------------------------------------------------
# Integer null space
# ---------------------------------------------------------------------------


class TestIntegerNullspace(unittest.TestCase):
    def test_basis_is_exact(self):
        A = np.array([[2, 4, -2], [1, 3, 0]])
        N, order = integer_nullspace(A)
        self.assertEqual(N.shape, (1, 3))
        np.testing.assert_array_equal(A @ N.T, np.zeros((2, 1)))
        self.assertEqual(order[:2], [0, 1])
        self.assertEqual(order[2], 2)

    def test_primitive_rows(self):
        A = np.array([[3, -6, 0]])
        N, _ = integer_nullspace(A)
        for row in N:
            self.assertEqual(np.gcd.reduce(np.abs(row)), 1)
        np.testing.assert_array_equal(A @ N.T, np.zeros((1, 2)))

    def test_full_rank(self):
        N, order = integer_nullspace(np.eye(3, dtype=int))
        self.assertEqual(N.shape, (0, 3))
        self.assertEqual(order, [0, 1, 2])

    def test_col_order(self):
        A = np.array([[1, 1, 0]])
        _, order = integer_nullspace(A, col_order=[1])
        self.assertEqual(order, [1, 0, 2])
        with self.assertRaises(ValueError):
            integer_nullspace(A, col_order=[0, 0])
        with self.assertRaises(ValueError):
            integer_nullspace(A, col_order=[5])

    def test_elimination_dtype(self):
        A = np.array([[2, 3, 0], [0, 5, 7]])
        N, _ = integer_nullspace(A, dtype=object)
        self.assertEqual(N.dtype, object)
        self.assertEqual([int(x) for x in N[0]], [21, -14, 10])
        N64, _ = integer_nullspace(A)
        self.assertEqual(N64.dtype, np.int64)
        np.testing.assert_array_equal(N64, N.astype(np.int64))

    def test_sparse_input(self):
        A = sparse.csc_matrix(np.array([[1, -1, 0], [0, 1, -1]]))
        N, _ = integer_nullspace(A)
        np.testing.assert_array_equal(np.abs(N), [[1, 1, 1]])


# ---------------------------------------------------------------------------
# Conservation laws of networks
# ---------------------------------------------------------------------------


class TestConservationLaws(unittest.TestCase):
    def test_binding(self):
        rn = build_binding()
        C = conservation_laws(rn)
        np.testing.assert_array_equal(C, [[-1, 1, 0], [1, 0, 1]])
        props = rn.properties
        self.assertEqual(props.rank, 1)
        self.assertEqual(props.nullity, 2)
        self.assertEqual(props.indep_species, [0])
        self.assertEqual(props.dep_species, [1, 2])
        self.assertEqual(stoichiometric_rank(rn), 1)

    def test_laws_annihilate_S(self):
        rn = build_mixed()
        C = conservation_laws(rn)
        self.assertEqual(C.shape, (3, 10))
        np.testing.assert_array_equal(C @ stoichiometric_matrix(rn), np.zeros((3, 10)))
        rows = [list(r) for r in C]
        self.assertIn([0, 0, 0, 1, 1, 1, 1, 1, 0, 0], rows)
        self.assertIn([-1, 1, 0, 0, 0, 0, 0, 0, 0, 0], rows)
        self.assertEqual(rn.properties.rank, 7)

    def test_no_laws(self):
        rn = ReactionNetwork.from_mappings([(None, "A", "k1"), ("A", None, "k2")])
        C = conservation_laws(rn)
        self.assertEqual(C.shape, (0, 1))
        self.assertEqual(conserved_equations(rn), [])

    def test_nonpositive_rows_negated(self):
        C, _ = conservation_laws_from_matrix(np.array([[1], [1], [-1]]), col_order=[2, 0, 1])
        for row in C:
            self.assertFalse(np.all(row <= 0))

    def test_col_order_selects_independent_species(self):
        rn = build_binding()
        conservation_laws(rn, col_order=[2])
        self.assertEqual(rn.properties.indep_species, [2])
        self.assertEqual(rn.properties.dep_species, [0, 1])

    def test_cached_col_order_warns(self):
        rn = build_binding()
        C = conservation_laws(rn)
        with self.assertLogs("crnkit.CRN.Props.conservation", level="WARNING"):
            self.assertIs(conservation_laws(rn, col_order=[2]), C)

    def test_cached_same_col_order_is_silent(self):
        # B is a free column listed before the pivot C
        rn = ReactionNetwork.from_mappings([("A", "B", "k1"), ("B", "A", "k2"), ("C", "D", "k3")])
        C = conservation_laws(rn, col_order=[0, 1])
        self.assertEqual(rn.properties.col_order, [0, 2, 1, 3])
        with mock.patch.object(conservation.LOGGER, "warning") as warning:
            self.assertIs(conservation_laws(rn, col_order=[0, 1]), C)
            conservation_laws(rn, col_order=[0, 1, 2, 3])
            conservation_laws(rn)
            conservation_laws(rn, dtype=np.int64)
        warning.assert_not_called()

    def test_cached_dtype_warns(self):
        rn = build_binding()
        C = conservation_laws(rn, dtype=object)
        with self.assertLogs("crnkit.CRN.Props.conservation", level="WARNING") as logs:
            self.assertIs(conservation_laws(rn, dtype=np.int64), C)
        self.assertIn("dtype", logs.output[0])
        self.assertEqual(C.dtype, object)

    def test_object_dtype(self):
        rn = build_binding()
        C = conservation_laws(rn, dtype=object)
        self.assertEqual(C.dtype, object)
        self.assertEqual([int(x) for x in C[1]], [1, 0, 1])

    def test_overflow(self):
        rn = ReactionNetwork.from_mappings([({"A": 200}, "B", "k1")])
        with self.assertRaises(ConservationLawOverflowError):
            conservation_laws(rn, dtype=np.int8)
        self.assertIsNone(rn.properties.conservation_mat)
        C = conservation_laws(rn, dtype=object)
        self.assertEqual([int(x) for x in C[0]], [1, 200])
        with self.assertRaises(OverflowError):
            conservation_laws_from_matrix(np.array([[-200], [1]]), dtype=np.int8)


# ---------------------------------------------------------------------------
# Symbolic equations
# ---------------------------------------------------------------------------


class TestConservedEquations(unittest.TestCase):
    def setUp(self):
        self.rn = build_binding()
        self.A, self.B, self.C = sp.symbols("A B C")

    def test_equations(self):
        eqs = conserved_equations(self.rn)
        self.assertEqual(len(eqs), 2)
        self.assertEqual(eqs[0], sp.Eq(self.B, GAMMA[0] + self.A))
        self.assertEqual(eqs[1], sp.Eq(self.C, GAMMA[1] - self.A))

    def test_constant_definitions(self):
        defs = conservation_law_constants(self.rn)
        self.assertEqual(defs[0], sp.Eq(GAMMA[0], self.B - self.A))
        self.assertEqual(defs[1], sp.Eq(GAMMA[1], self.C + self.A))
        self.assertEqual(self.rn.properties.conserved_constants, [GAMMA[0], GAMMA[1]])

    def test_rational_coefficients(self):
        rn = ReactionNetwork.from_mappings([({"A": 2}, "B", "k1")])
        eqs = conserved_equations(rn)
        self.assertEqual(len(eqs), 1)
        A, B = sp.symbols("A B")
        self.assertEqual(sp.simplify(eqs[0].rhs - (GAMMA[0] - sp.Rational(1, 2) * A)), 0)
        self.assertEqual(eqs[0].lhs, B)


class TestConservedQuantities(unittest.TestCase):
    def test_values(self):
        C = conservation_laws(build_binding())
        np.testing.assert_array_equal(conserved_quantities([1.0, 2.0, 3.0], C), [1.0, 4.0])

    def test_initial_conditions(self):
        rn = build_binding()
        check_conserved_initial_conditions(rn, ["A"])
        check_conserved_initial_conditions(rn, [sp.Symbol("C")])
        with self.assertRaises(StructuralPreconditionError):
            check_conserved_initial_conditions(rn, [])

    def test_initial_conditions_without_laws(self):
        rn = ReactionNetwork.from_mappings([(None, "A", "k1")])
        check_conserved_initial_conditions(rn, [])


if __name__ == "__main__":
    unittest.main()
