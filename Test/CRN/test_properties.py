import unittest

import numpy as np
from scipy import sparse

from crnkit.CRN.core import ReactionNetwork
from crnkit.CRN.properties import MatrixFormat, NetworkProperties
from crnkit.CRN.Props.deficiency import deficiency


class TestMatrixFormat(unittest.TestCase):
    def test_of(self):
        self.assertIs(MatrixFormat.of(np.zeros((2, 2))), MatrixFormat.DENSE)
        self.assertIs(MatrixFormat.of(sparse.csc_matrix((2, 2))), MatrixFormat.SPARSE)

    def test_from_string(self):
        self.assertIs(MatrixFormat("sparse"), MatrixFormat.SPARSE)
        with self.assertRaises(ValueError):
            MatrixFormat("coo")


class TestNetworkProperties(unittest.TestCase):
    def setUp(self):
        self.rn = ReactionNetwork.from_mappings(
            [(["A", "B"], ["C"], "k1"), (["C"], ["A", "B"], "k2")]
        )

    def test_fresh_cache_is_empty(self):
        props = NetworkProperties()
        self.assertTrue(props.is_empty())
        self.assertEqual(props.cached_fields(), [])
        self.assertIsNone(props.deficiency)
        self.assertIsNone(props.conservation_mat)

    def test_fill_and_reset(self):
        self.assertEqual(deficiency(self.rn), 0)
        props = self.rn.properties
        self.assertFalse(props.is_empty())
        for name in ("complexes", "incidence_mat", "linkage_classes", "rank", "deficiency"):
            self.assertIn(name, props.cached_fields())
        self.assertIn("deficiency", repr(props))

        props.reset()
        self.assertTrue(props.is_empty())
        self.assertIsNone(props.incidence_format)
        self.assertEqual(props.complex_to_rxs_map, {})

    def test_reset_then_recompute(self):
        self.assertEqual(deficiency(self.rn), 0)
        self.rn.properties.reset()
        self.assertEqual(deficiency(self.rn), 0)


if __name__ == "__main__":
    unittest.main()
