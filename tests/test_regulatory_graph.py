import networkx as nx
import pytest

from bmaforge.errors import ModelConversionError
from bmaforge.bma_network import BmaNetwork, BmaRelationship, BmaVariable
from bmaforge.regulatory_graph import Monotonicity, RegulatoryGraph, canonical_var_name


def test_canonical_var_name():
    assert canonical_var_name(BmaVariable(3, "CycD-1")) == "v_3_CycD1"
    assert canonical_var_name(BmaVariable(12, "p53 (active)")) == "v_12_p53active"
    assert canonical_var_name(BmaVariable(4)) == "v_4_"


def test_names_must_be_unique():
    with pytest.raises(ValueError):
        RegulatoryGraph(['a', 'b', 'a'])


def test_regulations():
    G = RegulatoryGraph(['a', 'b', 'c'])
    G.add_regulation(0, 1, Monotonicity.ACTIVATION)
    G.add_regulation(2, 1, Monotonicity.INHIBITION, observable=False)
    G.add_regulation(1, 1)
    assert G.get_regulators(1) == [0, 1, 2]
    assert G.get_targets(0) == [1]
    assert G.get_regulation(2, 1) == {'monotonicity': Monotonicity.INHIBITION, 'observable': False}
    assert G.get_regulation(1, 0) is None
    assert G.regulations() == [
        (0, 1, Monotonicity.ACTIVATION, True),
        (1, 1, None, True),
        (2, 1, Monotonicity.INHIBITION, False),
    ]
    assert list(G.indegrees) == [0, 3, 0]
    assert list(G.outdegrees) == [1, 1, 1]
    assert [list(regulators) for regulators in G.I] == [[], [0, 1, 2], []]


def test_conflicting_signs_become_unknown():
    G = RegulatoryGraph(['a', 'b'])
    G.add_regulation(0, 1, Monotonicity.ACTIVATION)
    G.add_regulation(0, 1, Monotonicity.ACTIVATION)
    assert G.get_regulation(0, 1)['monotonicity'] == Monotonicity.ACTIVATION
    G.add_regulation(0, 1, Monotonicity.INHIBITION)
    assert G.get_regulation(0, 1) == {'monotonicity': None, 'observable': True}
    assert len(G.regulations()) == 1


def test_remove_regulation():
    G = RegulatoryGraph(['a', 'b'])
    G.add_regulation(0, 1)
    G.remove_regulation(0, 1)
    assert G.regulations() == []
    with pytest.raises(ValueError):
        G.remove_regulation(0, 1)


def test_find_variable():
    G = RegulatoryGraph(['a', 'b'])
    assert G.find_variable('b') == 1
    assert G.find_variable('z') is None


def test_to_digraph():
    G = RegulatoryGraph(['a', 'b'])
    G.add_regulation(0, 1, Monotonicity.INHIBITION)
    D = G.to_DiGraph()
    assert isinstance(D, nx.DiGraph)
    assert list(D.edges(data='monotonicity')) == [('a', 'b', Monotonicity.INHIBITION)]
    assert list(G.to_DiGraph(USE_VARIABLE_NAMES=False).edges()) == [(0, 1)]
    D.add_edge('b', 'a')
    assert G.get_regulation(1, 0) is None


def test_equality():
    G1, G2 = RegulatoryGraph(['a', 'b']), RegulatoryGraph(['a', 'b'])
    G1.add_regulation(0, 1, Monotonicity.ACTIVATION)
    assert G1 != G2
    G2.add_regulation(0, 1, Monotonicity.ACTIVATION)
    assert G1 == G2


# ------------------------------------------------------------
# From BMA networks
# ------------------------------------------------------------

def test_from_bma_network():
    variables = [BmaVariable(5, "a"), BmaVariable(2, "b-2"), BmaVariable(9)]
    relationships = [
        BmaRelationship.new_activator(1, 5, 2),
        BmaRelationship.new_inhibitor(2, 9, 2),
        BmaRelationship.new_activator(3, 2, 5),
        BmaRelationship.new_inhibitor(4, 2, 5),
    ]
    G = RegulatoryGraph.from_bma_network(BmaNetwork(variables, relationships))
    assert G.variables == ["v_5_a", "v_2_b2", "v_9_"]
    assert G.regulations() == [
        (0, 1, Monotonicity.ACTIVATION, True),
        (1, 0, None, True),
        (2, 1, Monotonicity.INHIBITION, True),
    ]


def test_from_bma_network_errors():
    network = BmaNetwork([BmaVariable(1, "a"), BmaVariable(1, "b")])
    with pytest.raises(ModelConversionError) as info:
        RegulatoryGraph.from_bma_network(network)
    assert str(info.value) == "(Variable id: `1`) Id must be unique within the enclosing `BmaNetwork`"

    network = BmaNetwork([BmaVariable(1, "a")], [BmaRelationship.new_activator(7, 1, 3)])
    with pytest.raises(ModelConversionError) as info:
        RegulatoryGraph.from_bma_network(network)
    assert str(info.value) == "(Relationship id: `7`) Variable `3` does not exist"
