import unittest

import networkx as nx
import numpy as np
from scipy import sparse

from crnkit.CRN.core import ReactionNetwork
from crnkit.CRN.exceptions import StructuralPreconditionError
from crnkit.CRN.properties import MatrixFormat
from crnkit.CRN.Props.incidence import (
    complex_outgoing_matrix,
    incidence_graph,
    incidence_matrix,
    incidence_matrix_graph,
    reaction_edges,
)


def build_branching_network() -> ReactionNetwork:
    """
    A <-> B,  B -> C,  B -> C (parallel),  C -> A
    """
    return ReactionNetwork.from_mappings(
        [
            ("A", "B", "k1"),
            ("B", "A", "k2"),
            ("B", "C", "k3"),
            ("B", "C", "k4"),
            ("C", "A", "k5"),
        ]
    )


class TestIncidenceMatrices(unittest.TestCase):
    def setUp(self):
        self.rn = build_branching_network()

    def test_incidence_matrix(self):
        B = incidence_matrix(self.rn)
        np.testing.assert_array_equal(
            B,
            [
                [-1, 1, 0, 0, 1],
                [1, -1, -1, -1, 0],
                [0, 0, 1, 1, -1],
            ],
        )

    def test_complex_outgoing_matrix(self):
        D = complex_outgoing_matrix(self.rn)
        np.testing.assert_array_equal(
            D,
            [
                [-1, 0, 0, 0, 0],
                [0, -1, -1, -1, 0],
                [0, 0, 0, 0, -1],
            ],
        )
        self.assertIs(complex_outgoing_matrix(self.rn), D)

    def test_complex_outgoing_matrix_sparse(self):
        D = complex_outgoing_matrix(self.rn, MatrixFormat.SPARSE)
        self.assertTrue(sparse.issparse(D))
        self.assertTrue((D.toarray() <= 0).all())
        np.testing.assert_array_equal(
            D.toarray(), np.where(incidence_matrix(self.rn) == 1, 0, incidence_matrix(self.rn))
        )


class TestIncidenceGraph(unittest.TestCase):
    def setUp(self):
        self.rn = build_branching_network()

    def test_one_edge_per_reaction(self):
        G = incidence_graph(self.rn)
        self.assertIsInstance(G, nx.MultiDiGraph)
        self.assertEqual(G.number_of_nodes(), 3)
        self.assertEqual(G.number_of_edges(), 5)
        self.assertEqual(G.number_of_edges(1, 2), 2)
        self.assertEqual(sorted(k for _, _, k in G.edges(keys=True)), [0, 1, 2, 3, 4])
        self.assertIs(incidence_graph(self.rn), G)

    def test_reaction_edges(self):
        self.assertEqual(reaction_edges(self.rn), [(0, 1), (1, 0), (1, 2), (1, 2), (2, 0)])

    def test_self_loop_kept_in_graph(self):
        rn = ReactionNetwork.from_mappings([("A", "A", "k1"), ("A", "B", "k2")])
        G = incidence_graph(rn)
        self.assertTrue(G.has_edge(0, 0))
        self.assertEqual(G.number_of_edges(), 2)


class TestIncidenceMatrixGraph(unittest.TestCase):
    def test_round_trip_dense_and_sparse(self):
        rn = build_branching_network()
        B = incidence_matrix(rn)
        expected = sorted(incidence_graph(rn).edges(keys=True))
        self.assertEqual(sorted(incidence_matrix_graph(B).edges(keys=True)), expected)
        self.assertEqual(
            sorted(incidence_matrix_graph(sparse.csc_matrix(B)).edges(keys=True)), expected
        )

    def test_empty_matrix(self):
        with self.assertRaises(StructuralPreconditionError):
            incidence_matrix_graph(np.zeros((0, 0), dtype=int))

    def test_malformed_columns(self):
        with self.assertRaises(ValueError):
            incidence_matrix_graph(np.array([[-1], [-1]]))
        with self.assertRaises(ValueError):
            incidence_matrix_graph(np.array([[-2], [2]]))
        with self.assertRaises(ValueError):
            incidence_matrix_graph(sparse.csc_matrix(np.array([[0], [0]])))


if __name__ == "__main__":
    unittest.main()
