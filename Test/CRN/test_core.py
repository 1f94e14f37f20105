import unittest

import sympy as sp

from crnkit.CRN.core import Reaction, ReactionNetwork, Species, as_rate
from crnkit.CRN.exceptions import UnsupportedCompositionError
from crnkit.CRN.complexes import reaction_complex_map


# ---------------------------------------------------------------------------
# Helpers to build small test networks
# ---------------------------------------------------------------------------


def build_mm_network() -> ReactionNetwork:
    """
    Michaelis–Menten mechanism:

        E + S <-> ES -> E + P
    """
    return ReactionNetwork.from_mappings(
        [
            (["E", "S"], ["ES"], "k1"),
            (["ES"], ["E", "S"], "k2"),
            (["ES"], ["E", "P"], "k3"),
        ],
        name="mm",
    )


def build_nested_network() -> ReactionNetwork:
    """Parent ``A -> B`` with a sub-system ``inner`` holding ``A -> 2C``."""
    inner = ReactionNetwork.from_mappings([("A", {"C": 2}, "k")], name="inner")
    outer = ReactionNetwork.from_mappings([("A", "B", "k")], name="outer")
    outer.systems.append(inner)
    return outer


class TestSpeciesAndReaction(unittest.TestCase):
    def test_species_metadata_ignored_for_equality(self):
        a = Species("A", metadata={"charge": 1})
        b = Species("A", metadata={"charge": 2})
        self.assertEqual(a, b)
        self.assertEqual(hash(a), hash(b))
        self.assertEqual(a.symbol, sp.Symbol("A"))

    def test_reaction_drops_zero_coefficients(self):
        rx = Reaction({0: 1, 1: 0}, {2: 2}, rate="k1")
        self.assertEqual(rx.substrates, {0: 1})
        self.assertEqual(rx.products, {2: 2})
        self.assertEqual(rx.rate, sp.Symbol("k1"))

    def test_reaction_rejects_negative_and_fractional(self):
        with self.assertRaises(ValueError):
            Reaction({0: -1}, {1: 1})
        with self.assertRaises(ValueError):
            Reaction({0: 1.5}, {1: 1})

    def test_net_stoichiometry(self):
        rx = Reaction({0: 2, 1: 1}, {0: 1, 2: 1})
        self.assertEqual(rx.net_stoichiometry(), {0: -1, 1: -1, 2: 1})

    def test_as_rate_keeps_identifiers_symbolic(self):
        # "E" and "I" would be sympy constants through sympify
        self.assertEqual(as_rate("E"), sp.Symbol("E"))
        self.assertEqual(as_rate("I"), sp.Symbol("I"))
        self.assertEqual(as_rate("k1*k2"), sp.Symbol("k1") * sp.Symbol("k2"))
        self.assertEqual(as_rate(2), sp.Integer(2))


class TestReactionNetwork(unittest.TestCase):
    def setUp(self):
        self.rn = build_mm_network()

    def test_from_mappings_species_order(self):
        self.assertEqual([s.name for s in self.rn.species], ["E", "S", "ES", "P"])
        self.assertEqual(self.rn.num_species(), 4)
        self.assertEqual(self.rn.num_reactions(), 3)

    def test_parameters_in_first_appearance_order(self):
        self.assertEqual(self.rn.parameters, list(sp.symbols("k1 k2 k3")))
        self.assertEqual(self.rn.num_params(), 3)
        self.assertEqual(self.rn.parameter_map()[sp.Symbol("k2")], 1)
        self.assertEqual(self.rn.reaction_rates(), list(sp.symbols("k1 k2 k3")))

    def test_mapping_sides_and_empty_complex(self):
        rn = ReactionNetwork.from_mappings([(None, {"A": 2}, 1.0), (["A", "A"], None, 2)])
        self.assertEqual(rn.reactions[0].substrates, {})
        self.assertEqual(rn.reactions[0].products, {0: 2})
        self.assertEqual(rn.reactions[1].substrates, {0: 2})
        self.assertEqual(rn.parameters, [])

    def test_constant_species_map(self):
        rn = ReactionNetwork.from_mappings(
            [(["A", "E"], ["B", "E"], "k1")], constant_species=["E"]
        )
        self.assertEqual([s.name for s in rn.analysis_species], ["A", "B"])
        self.assertEqual(rn.species_map(), {0: 0, 2: 1})
        self.assertEqual(rn.num_species(), 2)

    def test_invalid_constructs(self):
        with self.assertRaises(ValueError):
            ReactionNetwork([Species("A"), Species("A")], [])
        with self.assertRaises(ValueError):
            ReactionNetwork([Species("A")], [Reaction({0: 1}, {3: 1})])
        with self.assertRaises(ValueError):
            ReactionNetwork.from_mappings([("A", "B")])

    def test_species_named_rate_is_not_a_parameter(self):
        rn = ReactionNetwork.from_mappings([("A", "B", "k1*A")])
        self.assertEqual(rn.parameters, [sp.Symbol("k1")])

    def test_repr(self):
        self.assertIn("name='mm'", repr(self.rn))


class TestFlatten(unittest.TestCase):
    def test_nested_network_is_rejected(self):
        with self.assertRaises(UnsupportedCompositionError):
            reaction_complex_map(build_nested_network())

    def test_flatten_namespaces_species_and_parameters(self):
        flat = build_nested_network().flatten()
        self.assertEqual(flat.systems, [])
        self.assertEqual([s.name for s in flat.species], ["A", "B", "inner.A", "inner.C"])
        self.assertEqual(flat.parameters, [sp.Symbol("k"), sp.Symbol("inner.k")])
        self.assertEqual(flat.reactions[1].substrates, {2: 1})
        self.assertEqual(flat.reactions[1].products, {3: 2})
        self.assertEqual(flat.reactions[1].rate, sp.Symbol("inner.k"))
        self.assertTrue(flat.properties.is_empty())

    def test_flatten_without_systems_copies(self):
        rn = build_mm_network()
        flat = rn.flatten()
        self.assertIsNot(flat, rn)
        self.assertEqual(len(flat.reactions), 3)
        self.assertEqual(flat.name, "mm")


if __name__ == "__main__":
    unittest.main()
