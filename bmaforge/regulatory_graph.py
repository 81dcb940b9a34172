#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Regulatory graphs of Boolean networks.

This module defines the :class:`~bmaforge.RegulatoryGraph` class, which
encodes the signed regulatory topology of a Boolean network independently of
any update functions. Every regulation carries a *monotonicity* (activation,
inhibition, or unknown) and an *observability* flag.

The graph is backed by a :class:`networkx.DiGraph` whose nodes are variable
indices ``0..N-1``.
"""

from enum import Enum
from collections.abc import Sequence

import numpy as np
import networkx as nx

from bmaforge.errors import ModelConversionError
from bmaforge.utils import sanitize_name

__all__ = [
    "Monotonicity",
    "RegulatoryGraph",
    "canonical_var_name",
]


class Monotonicity(Enum):
    ACTIVATION = 'activation'
    INHIBITION = 'inhibition'


def canonical_var_name(variable) -> str:
    """
    Build the canonical Boolean network name of a BMA variable.

    The display name is stripped of every character that is not alphanumeric
    or underscore and prefixed with the variable ID, so that names are unique
    whenever IDs are unique: ``v_<id>_<sanitized name>``.

    Parameters
    ----------
    variable : BmaVariable
        The variable to name.

    Returns
    -------
    str
        The canonical name, e.g. ``v_3_CycD1`` for variable 3 named ``CycD-1``.
    """
    return f"v_{variable.id}_{sanitize_name(variable.name)}"


class RegulatoryGraph(object):
    """
    Signed, directed regulatory graph of a Boolean network.

    Parameters
    ----------
    variables : sequence of str
        Names of the variables. Variable ``i`` is node ``i`` of the graph.
        Names must be unique.

    Attributes
    ----------
    variables : list[str]
        Names of the variables.
    N : int
        Number of variables.
    graph : nx.DiGraph
        The underlying graph. Edge ``u -> v`` means that ``u`` regulates
        ``v``; edges carry the attributes ``monotonicity``
        (:class:`Monotonicity` or ``None``) and ``observable`` (bool).

    Examples
    --------
    >>> G = RegulatoryGraph(['a', 'b'])
    >>> G.add_regulation(0, 1, Monotonicity.ACTIVATION)
    >>> G.add_regulation(0, 1, Monotonicity.INHIBITION)
    >>> G.get_regulation(0, 1)
    {'monotonicity': None, 'observable': True}
    """

    def __init__(self, variables : Sequence[str]):
        variables = [str(name) for name in variables]
        if len(set(variables)) != len(variables):
            raise ValueError("Variable names in a regulatory graph must be unique")
        self.variables = variables
        self.N = len(variables)
        self.graph = nx.DiGraph()
        for i, name in enumerate(variables):
            self.graph.add_node(i, name=name)

    @classmethod
    def from_bma_network(cls, network) -> "RegulatoryGraph":
        """
        Extract the regulatory graph of a BMA network.

        Variable ``i`` of the graph is the ``i``-th variable of ``network``,
        named by :func:`canonical_var_name`. Every relationship becomes a
        regulation whose monotonicity follows the relationship type.
        Relationships of the same type between the same pair collapse into
        one; relationships of different types yield a single regulation with
        unknown monotonicity. All regulations are observable.

        Parameters
        ----------
        network : BmaNetwork
            The network to convert.

        Returns
        -------
        RegulatoryGraph
            The graph.

        Raises
        ------
        ModelConversionError
            If variable IDs are not unique or a relationship references an
            unknown variable.
        """
        id_map = {}
        for index, variable in enumerate(network.variables):
            if variable.id in id_map:
                raise ModelConversionError(f"(Variable id: `{variable.id}`) Id must be unique within the enclosing `BmaNetwork`")
            id_map[variable.id] = index

        for relationship in network.relationships:
            for endpoint in (relationship.from_variable, relationship.to_variable):
                if endpoint not in id_map:
                    raise ModelConversionError(f"(Relationship id: `{relationship.id}`) Variable `{endpoint}` does not exist")

        rg = cls([canonical_var_name(variable) for variable in network.variables])
        for relationship in network.relationships:
            rg.add_regulation(id_map[relationship.from_variable], id_map[relationship.to_variable],
                              relationship.type.to_monotonicity())
        return rg

    def add_regulation(self, source : int, target : int, monotonicity : Monotonicity = None,
                       observable : bool = True) -> None:
        """
        Add the regulation ``source -> target``.

        If the regulation already exists with a different monotonicity, its
        monotonicity becomes unknown (``None``). Adding an identical
        regulation again has no effect.
        """
        assert 0 <= source < self.N and 0 <= target < self.N, "regulation endpoints must be graph nodes"
        if self.graph.has_edge(source, target):
            existing = self.graph[source][target]
            if existing['monotonicity'] != monotonicity:
                existing['monotonicity'] = None
            existing['observable'] = existing['observable'] or observable
        else:
            self.graph.add_edge(source, target, monotonicity=monotonicity, observable=observable)

    def remove_regulation(self, source : int, target : int) -> None:
        if not self.graph.has_edge(source, target):
            raise ValueError(f"No regulation {self.variables[source]} -> {self.variables[target]}")
        self.graph.remove_edge(source, target)

    def get_regulation(self, source : int, target : int):
        """Edge attributes of ``source -> target``, or ``None`` if there is no such regulation."""
        if not self.graph.has_edge(source, target):
            return None
        return dict(self.graph[source][target])

    def find_variable(self, name : str):
        """Index of the variable called ``name``, or ``None``."""
        try:
            return self.variables.index(name)
        except ValueError:
            return None

    def get_regulators(self, target : int) -> list:
        return sorted(self.graph.predecessors(target))

    def get_targets(self, source : int) -> list:
        return sorted(self.graph.successors(source))

    def regulations(self) -> list:
        """
        All regulations as ``(source, target, monotonicity, observable)``
        tuples, sorted by ``(source, target)``.
        """
        return sorted(
            ((u, v, data['monotonicity'], data['observable']) for u, v, data in self.graph.edges(data=True)),
            key=lambda regulation: (regulation[0], regulation[1]),
        )

    @property
    def I(self) -> list:
        """Regulator index arrays, one per variable."""
        return [np.array(self.get_regulators(i), dtype=int) for i in range(self.N)]

    @property
    def indegrees(self) -> np.ndarray:
        return np.array([self.graph.in_degree(i) for i in range(self.N)], dtype=int)

    @property
    def outdegrees(self) -> np.ndarray:
        return np.array([self.graph.out_degree(i) for i in range(self.N)], dtype=int)

    def to_DiGraph(self, USE_VARIABLE_NAMES : bool = True) -> nx.DiGraph:
        """
        Return a copy of the graph as a NetworkX directed graph.

        Parameters
        ----------
        USE_VARIABLE_NAMES : bool, optional
            If True (default), nodes are labeled using variable names.
            If False, nodes are labeled by integer indices.

        Returns
        -------
        nx.DiGraph
            Directed graph with ``monotonicity`` and ``observable`` edge
            attributes.
        """
        if USE_VARIABLE_NAMES:
            return nx.relabel_nodes(self.graph, dict(enumerate(self.variables)), copy=True)
        return self.graph.copy()

    def __str__(self):
        return f"RegulatoryGraph(N={self.N}, regulations={self.graph.number_of_edges()})"

    def __repr__(self):
        return f"{type(self).__name__}(N={self.N})"

    def __eq__(self, other):
        return (isinstance(other, RegulatoryGraph) and self.variables == other.variables
                and self.regulations() == other.regulations())
