#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Boolean networks: a regulatory graph plus one Boolean update formula per
variable, with conversion from BMA models and ``.bnet`` I/O.

@author: bmaforge developers
"""

import numpy as np

from typing import Optional
from collections.abc import Sequence

from bmaforge.errors import InvalidUpdateFunction, ModelConversionError
from bmaforge.boolean_formula import BooleanFormula
from bmaforge.regulatory_graph import Monotonicity, RegulatoryGraph
import bmaforge.utils as utils

__all__ = [
    "BooleanNetwork",
]


class BooleanNetwork(object):
    """
    A Boolean network.

    **Constructor Parameters:**

        - graph (RegulatoryGraph): Variables and regulations.
        - update_functions (list[BooleanFormula | None], optional): One
          formula per variable. ``None`` marks a variable without a known
          function (an implicit parameter). Defaults to all ``None``.

    **Members:**

        - graph (RegulatoryGraph): As passed by the constructor.
        - variables (list[str]): Variable names.
        - N (int): Number of variables.
        - F (list[BooleanFormula | None]): The update formulas.
    """

    def __init__(self, graph : RegulatoryGraph,
                 update_functions : Optional[Sequence[Optional[BooleanFormula]]] = None):
        assert isinstance(graph, RegulatoryGraph), "graph must be a RegulatoryGraph"
        self.graph = graph
        self.F = [None] * graph.N
        if update_functions is not None:
            assert len(update_functions) == graph.N, "len(update_functions) == N required"
            for i, formula in enumerate(update_functions):
                self.set_update_function(i, formula)

    @property
    def variables(self) -> list:
        return self.graph.variables

    @property
    def N(self) -> int:
        return self.graph.N

    def __len__(self):
        return self.N

    def __getitem__(self, index):
        return self.F[index]

    def __str__(self):
        return f"Boolean network of {self.N} nodes with indegrees {self.graph.indegrees}"

    def __eq__(self, other):
        return isinstance(other, BooleanNetwork) and self.graph == other.graph and self.F == other.F

    def set_update_function(self, index : int, formula : Optional[BooleanFormula]) -> None:
        """
        Set the update formula of variable ``index``.

        **Raises:**

            - ValueError: If the formula uses a variable that does not regulate
              ``index``.
        """
        if formula is not None:
            regulators = set(self.graph.get_regulators(index))
            unknown = formula.collect_variables() - regulators
            if len(unknown) > 0:
                names = [self.variables[i] for i in sorted(unknown)]
                raise ValueError(f"Update function of {self.variables[index]} uses {names}, which are not its regulators")
        self.F[index] = formula

    def get_update_function(self, index : int) -> Optional[BooleanFormula]:
        return self.F[index]

    def parameters(self) -> set:
        """Names of all explicit parameters (uninterpreted functions) in the update formulas."""
        result = set()
        for formula in self.F:
            if formula is not None:
                result |= formula.collect_parameters()
        return result

    def implicit_parameters(self) -> list:
        """Indices of variables without an update formula."""
        return [i for i, formula in enumerate(self.F) if formula is None]

    def evaluate(self, index : int, state : Sequence) -> bool:
        """Evaluate the update formula of ``index`` in the network state ``state``."""
        if self.F[index] is None:
            raise ValueError(f"Variable {self.variables[index]} has no update function")
        return self.F[index].evaluate(state)

    @classmethod
    def from_bma(cls, model, MINIMIZE_EXPRESSION : bool = True) -> "BooleanNetwork":
        """
        Convert a Boolean BMA model into a Boolean network.

        Variables keep the order of the model and get canonical names
        (``v_<id>_<name>``, see :func:`bmaforge.canonical_var_name`); the
        regulatory graph is built by
        :meth:`RegulatoryGraph.from_bma_network`. Every update function is
        converted by :meth:`BmaModel.convert_function_to_aeon`; variables
        with maximum level 0 get the constant ``false``.

        **Parameters:**

            - model (BmaModel): A model with all levels within ``[0, 1]``.
            - MINIMIZE_EXPRESSION (bool, optional): Minimize the update
              formulas with Espresso. Defaults to true.

        **Returns:**

            - BooleanNetwork: The network.

        **Raises:**

            - ModelConversionError: If the model is multi-valued, has an
              invalid range or formula, duplicate variable IDs, dangling
              relationships, or a function that cannot be converted.
        """
        if not model.is_boolean():
            raise ModelConversionError("Converting multi-valued models into Boolean networks is not supported")

        network = model.network
        for variable in network.variables:
            if variable.min_level() > variable.max_level():
                raise ModelConversionError(f"(Variable id: `{variable.id}`) Range `{variable.range}` is invalid; must be a non-empty interval")
            if isinstance(variable.formula, InvalidUpdateFunction):
                raise ModelConversionError(f"(Variable id: `{variable.id}`) {variable.formula}") from variable.formula

        graph = RegulatoryGraph.from_bma_network(network)
        bn = cls(graph)
        id_map = {variable.id: index for index, variable in enumerate(network.variables)}

        for index, variable in enumerate(network.variables):
            if variable.max_level() == 0:
                bn.set_update_function(index, BooleanFormula.mk_const(False))
                continue
            formula = model.convert_function_to_aeon(variable, id_map, MINIMIZE_EXPRESSION=MINIMIZE_EXPRESSION)
            bn.set_update_function(index, formula)
        return bn

    def to_bnet(self, separator : str = ', ') -> str:
        """
        Write the network in the ``.bnet`` format (``targets, factors``
        header followed by one ``name, formula`` line per variable).

        **Raises:**

            - ValueError: If a variable has no update formula or a formula
              contains parameters.
        """
        lines = [f"targets{separator}factors"]
        for i in range(self.N):
            if self.F[i] is None:
                raise ValueError(f"Variable {self.variables[i]} has no update function")
            lines.append(f"{self.variables[i]}{separator}{self.F[i].to_string(self.variables, BNET=True)}")
        return '\n'.join(lines) + '\n'

    @classmethod
    def from_bnet(cls, bnet_string : str) -> "BooleanNetwork":
        """
        Read a network in the ``.bnet`` format.

        Empty lines, ``#`` comments and the ``targets, factors`` header are
        skipped. Every formula may only reference declared targets. The
        regulators of a variable are the variables its formula uses, and the
        sign of each regulation is inferred from the truth table of the
        formula (unknown for non-monotonic regulations).
        """
        entries = []
        for line in bnet_string.splitlines():
            line = line.split('#', 1)[0].strip()
            if line == '':
                continue
            if ',' not in line:
                raise ValueError(f"Invalid bnet line `{line}`: expected `target, factors`")
            target, factors = (part.strip() for part in line.split(',', 1))
            if target.lower() == 'targets' and factors.lower() == 'factors':
                continue
            entries.append((target, factors))

        names = [target for (target, _) in entries]
        formulas = [BooleanFormula.parse(factors, names) for (_, factors) in entries]

        graph = RegulatoryGraph(names)
        for target, formula in enumerate(formulas):
            regulators = sorted(formula.collect_variables())
            signs = _infer_monotonicity(formula, regulators)
            for regulator, sign in zip(regulators, signs):
                graph.add_regulation(regulator, target, sign)
        return cls(graph, formulas)


def _infer_monotonicity(formula : BooleanFormula, regulators : list) -> list:
    """
    Sign of every regulator in ``formula``: ``ACTIVATION`` if raising the
    regulator never lowers the output, ``INHIBITION`` if it never raises it,
    ``None`` otherwise.
    """
    n = len(regulators)
    if n == 0 or len(formula.collect_parameters()) > 0:
        return [None] * n
    left_side = utils.get_left_side_of_truth_table(n)
    f = np.array([formula.evaluate(dict(zip(regulators, row))) for row in left_side], dtype=np.int8)
    signs = []
    for j in range(n):
        stride = 2 ** (n - 1 - j)
        blocks = f.reshape(-1, 2, stride)
        diff = blocks[:, 1, :] - blocks[:, 0, :]
        if diff.min() >= 0 and diff.max() == 1:
            signs.append(Monotonicity.ACTIVATION)
        elif diff.min() == -1 and diff.max() <= 0:
            signs.append(Monotonicity.INHIBITION)
        else:
            signs.append(None)
    return signs
