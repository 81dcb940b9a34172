#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
BMA networks: variables, relationships, and the evaluation of their update
functions.

BMA rescales every regulator level onto the range of the regulated variable
before plugging it into the update function, and rounds (half away from zero)
and truncates the result back into that range. This module implements this
pipeline and uses it to enumerate complete function tables.

@author: bmaforge developers
"""

import warnings
import itertools
from enum import Enum
from fractions import Fraction

import numpy as np
import pandas as pd

from typing import Optional, Union
from collections.abc import Mapping, Sequence

from bmaforge.errors import EvaluationError, InvalidUpdateFunction, ModelConversionError
from bmaforge.expression import AggregateFn, ArithOp, UpdateFunction
from bmaforge.regulatory_graph import Monotonicity
from bmaforge.utils import round_half_away_from_zero

__all__ = [
    "LARGE_TABLE_WARNING_ROWS",
    "RelationshipType",
    "BmaVariable",
    "BmaRelationship",
    "FunctionTable",
    "BmaNetwork",
    "normalize_input",
    "normalize_output",
    "create_default_update_function",
]

#: Function tables with more rows than this trigger a warning.
LARGE_TABLE_WARNING_ROWS = 2**16


class RelationshipType(Enum):
    ACTIVATOR = 'Activator'
    INHIBITOR = 'Inhibitor'

    def __str__(self):
        return self.value

    def to_monotonicity(self) -> Monotonicity:
        if self == RelationshipType.ACTIVATOR:
            return Monotonicity.ACTIVATION
        return Monotonicity.INHIBITION

    @classmethod
    def from_string(cls, value : str) -> "RelationshipType":
        for relationship_type in cls:
            if relationship_type.value.lower() == str(value).strip().lower():
                return relationship_type
        raise ValueError(f"Unknown relationship type `{value}`")


def normalize_input(source_range : tuple, target_range : tuple, value) -> Fraction:
    """
    Rescale a level of a regulator with range ``[a, b]`` onto the range
    ``[c, d]`` of the regulated variable: ``(value - a) * (d - c) / (b - a) + c``.

    Levels of constant regulators (``a == b``) are returned unchanged.

    **Parameters:**

        - source_range (tuple[int, int]): Range ``(a, b)`` of the regulator.
        - target_range (tuple[int, int]): Range ``(c, d)`` of the target.
        - value (int): Level of the regulator.

    **Returns:**

        - Fraction: The exact rescaled level.
    """
    (a, b), (c, d) = source_range, target_range
    if a == b:
        return Fraction(value)
    return Fraction((value - a) * (d - c), b - a) + c


def normalize_output(target_range : tuple, raw) -> int:
    """
    Round a raw function value half away from zero and truncate it into
    ``target_range``.

    **Example:**

        >>> normalize_output((0, 4), Fraction(5, 2))
        3
        >>> normalize_output((0, 4), Fraction(-5, 2))
        0
    """
    low, high = target_range
    return max(min(round_half_away_from_zero(raw), high), low)


class BmaVariable(object):
    """
    A discrete variable of a BMA network.

    **Members:**

        - id (int): Identifier, unique within the network.
        - name (str | None): Display name.
        - range (tuple[int, int]): Inclusive range of levels. A single-value
          range makes the variable constant.
        - formula (UpdateFunction | InvalidUpdateFunction | None): The update
          function, the parse error of an invalid formula, or ``None`` if the
          default function applies.
    """

    __slots__ = ['id', 'name', 'range', 'formula']

    def __init__(self, id : int, name : Optional[str] = None, range : tuple = (0, 1),
                 formula : Union[UpdateFunction, InvalidUpdateFunction, None] = None):
        self.id = int(id)
        self.name = name
        self.range = (int(range[0]), int(range[1]))
        self.formula = formula

    @classmethod
    def new_boolean(cls, id : int, name : Optional[str] = None,
                    formula : Union[UpdateFunction, str, None] = None) -> "BmaVariable":
        """Create a variable with range ``(0, 1)``. A string formula is parsed (IDs only)."""
        if isinstance(formula, str):
            formula = UpdateFunction.from_string(formula)
        return cls(id, name, (0, 1), formula)

    def min_level(self) -> int:
        return self.range[0]

    def max_level(self) -> int:
        return self.range[1]

    def has_constant_range(self) -> bool:
        return self.range[0] == self.range[1]

    def name_or_default(self) -> str:
        return self.name if self.name is not None else f"v_{self.id}"

    def formula_string(self) -> str:
        """The textual formula: canonical for valid formulas, as written for invalid ones."""
        if self.formula is None:
            return ''
        if isinstance(self.formula, InvalidUpdateFunction):
            return self.formula.expression
        return str(self.formula)

    def normalize_input_level(self, source : "BmaVariable", value : int) -> Fraction:
        """Rescale a level of ``source`` onto the range of this variable."""
        return normalize_input(source.range, self.range, value)

    def normalize_output_level(self, value) -> int:
        """Round and truncate a raw function value into the range of this variable."""
        return normalize_output(self.range, value)

    def __eq__(self, other):
        return (isinstance(other, BmaVariable) and self.id == other.id and self.name == other.name
                and self.range == other.range and self.formula == other.formula)

    def __hash__(self):
        return hash((self.id, self.name, self.range))

    def __repr__(self):
        return f"BmaVariable(id={self.id}, name={self.name!r}, range={self.range}, formula={self.formula_string()!r})"


class BmaRelationship(object):
    """A typed relationship ``from_variable -> to_variable``."""

    __slots__ = ['id', 'from_variable', 'to_variable', 'type']

    def __init__(self, id : int, from_variable : int, to_variable : int, type : RelationshipType):
        self.id = int(id)
        self.from_variable = int(from_variable)
        self.to_variable = int(to_variable)
        self.type = type

    @classmethod
    def new_activator(cls, id : int, from_variable : int, to_variable : int) -> "BmaRelationship":
        return cls(id, from_variable, to_variable, RelationshipType.ACTIVATOR)

    @classmethod
    def new_inhibitor(cls, id : int, from_variable : int, to_variable : int) -> "BmaRelationship":
        return cls(id, from_variable, to_variable, RelationshipType.INHIBITOR)

    def __eq__(self, other):
        return (isinstance(other, BmaRelationship) and self.id == other.id
                and self.from_variable == other.from_variable
                and self.to_variable == other.to_variable and self.type == other.type)

    def __hash__(self):
        return hash((self.id, self.from_variable, self.to_variable, self.type))

    def __repr__(self):
        return f"BmaRelationship(id={self.id}, {self.from_variable} -> {self.to_variable}, {self.type})"


class FunctionTable(object):
    """
    Complete input/output table of one BMA update function.

    Rows enumerate every combination of regulator levels, with regulators
    ordered by ID and the last regulator varying fastest. For ``k`` Boolean
    regulators, row ``i`` therefore holds the binary representation of ``i``.

    **Members:**

        - regulators (list[int]): Regulator IDs, sorted.
        - rows (list[tuple[dict[int, int], int]]): ``(valuation, output)``
          pairs.
    """

    __slots__ = ['regulators', 'rows']

    def __init__(self, regulators : Sequence[int], rows : Sequence[tuple]):
        self.regulators = list(regulators)
        self.rows = [(dict(valuation), int(output)) for (valuation, output) in rows]

    @property
    def outputs(self) -> np.ndarray:
        return np.array([output for (_, output) in self.rows], dtype=int)

    def is_boolean(self) -> bool:
        """True if every input and output level is 0 or 1."""
        for (valuation, output) in self.rows:
            if output not in (0, 1) or any(level not in (0, 1) for level in valuation.values()):
                return False
        return True

    def to_dataframe(self) -> pd.DataFrame:
        """
        Return the table as a pandas DataFrame with one column per regulator
        (named by ID) followed by an ``output`` column.
        """
        columns = self.regulators + ['output']
        data = [[valuation[r] for r in self.regulators] + [output] for (valuation, output) in self.rows]
        return pd.DataFrame(data, columns=columns)

    def __len__(self):
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    def __getitem__(self, index):
        return self.rows[index]

    def __eq__(self, other):
        if isinstance(other, FunctionTable):
            return self.regulators == other.regulators and self.rows == other.rows
        if isinstance(other, (list, tuple)):
            return self.rows == [(dict(valuation), output) for (valuation, output) in other]
        return NotImplemented

    def __repr__(self):
        return f"FunctionTable(regulators={self.regulators}, rows={len(self.rows)})"


def create_default_update_function(network : "BmaNetwork", var_id : int) -> UpdateFunction:
    """
    Build the update function BMA uses for a variable without a formula:
    ``avg(activators) - avg(inhibitors)``.

    A side without regulators contributes the constant ``0``, and a variable
    without any regulators gets the constant ``0``. In particular, a variable
    regulated only by inhibitors can never rise above its minimum level. This
    mirrors BMA and is reported with a warning.

    **Parameters:**

        - network (BmaNetwork): The network.
        - var_id (int): ID of the regulated variable.

    **Returns:**

        - UpdateFunction: The default function. Arguments of ``avg`` are
          sorted by ID.
    """
    def average(regulators):
        if len(regulators) == 0:
            return UpdateFunction.mk_constant(0)
        arguments = [UpdateFunction.mk_variable(r) for r in sorted(regulators)]
        return UpdateFunction.mk_aggregation(AggregateFn.AVG, arguments)

    positive = network.get_regulators(var_id, RelationshipType.ACTIVATOR)
    negative = network.get_regulators(var_id, RelationshipType.INHIBITOR)
    if len(positive) == 0 and len(negative) == 0:
        return UpdateFunction.mk_constant(0)
    if len(positive) == 0:
        warnings.warn(f"Variable `{var_id}` has only inhibitors; its default update function "
                      "never exceeds the minimum level.", UserWarning, stacklevel=3)
    return UpdateFunction.mk_arithmetic(ArithOp.MINUS, average(positive), average(negative))


class BmaNetwork(object):
    """
    A named network of :class:`BmaVariable` objects connected by
    :class:`BmaRelationship` objects.

    **Members:**

        - name (str): Network name (can be blank).
        - variables (list[BmaVariable]): The variables.
        - relationships (list[BmaRelationship]): The relationships.
    """

    __slots__ = ['name', 'variables', 'relationships']

    def __init__(self, variables : Sequence[BmaVariable] = (), relationships : Sequence[BmaRelationship] = (),
                 name : str = ''):
        self.name = name
        self.variables = list(variables)
        self.relationships = list(relationships)

    def __eq__(self, other):
        return (isinstance(other, BmaNetwork) and self.name == other.name
                and self.variables == other.variables and self.relationships == other.relationships)

    def __repr__(self):
        return f"BmaNetwork(name={self.name!r}, variables={len(self.variables)}, relationships={len(self.relationships)})"

    def find_variable(self, id : int) -> Optional[BmaVariable]:
        for variable in self.variables:
            if variable.id == id:
                return variable
        return None

    def get_regulators(self, target_var : int, type : Optional[RelationshipType] = None) -> set:
        """IDs of the variables regulating ``target_var``, optionally only those of ``type``."""
        return {r.from_variable for r in self.relationships
                if r.to_variable == target_var and (type is None or r.type == type)}

    # Default functions

    def build_default_update_function(self, var_id : int) -> UpdateFunction:
        return create_default_update_function(self, var_id)

    def set_default_function(self, var_id : int):
        """
        Replace the formula of ``var_id`` by its default function. Returns the
        previous formula.
        """
        variable = self.find_variable(var_id)
        assert variable is not None, f"No variable with id `{var_id}`"
        previous = variable.formula
        variable.formula = self.build_default_update_function(var_id)
        return previous

    def populate_missing_functions(self) -> None:
        """Assign default functions to all variables without a formula."""
        for var_id in [v.id for v in self.variables if v.formula is None]:
            self.set_default_function(var_id)

    # Evaluation

    def _get_variable(self, var_id : int, role : str) -> BmaVariable:
        variable = self.find_variable(var_id)
        if variable is None:
            raise EvaluationError(f"{role} variable with id `{var_id}` not found")
        return variable

    def evaluate(self, var_id : int, valuation : Mapping) -> int:
        """
        Evaluate the update function of a variable.

        Input levels are rescaled onto the range of the variable, the
        function is evaluated exactly, and the result is rounded half away
        from zero and truncated into the range of the variable.

        **Parameters:**

            - var_id (int): The variable whose function is evaluated.
            - valuation (dict[int, int]): Level of every input variable.

        **Returns:**

            - int: The resulting level.

        **Raises:**

            - EvaluationError: If a variable does not exist, the variable has
              no update function, an input value is missing, or a division by
              zero occurs.
            - InvalidUpdateFunction: If the stored formula failed to parse.
        """
        target = self._get_variable(var_id, 'Target')
        normalized = {}
        for source_id, level in valuation.items():
            source = self._get_variable(source_id, 'Source')
            normalized[source_id] = target.normalize_input_level(source, level)

        if target.formula is None:
            raise EvaluationError(f"No update function found for `{var_id}`")
        if isinstance(target.formula, InvalidUpdateFunction):
            raise target.formula
        return target.normalize_output_level(target.formula.evaluate_raw(normalized))

    def build_function_table(self, var_id : int) -> FunctionTable:
        """
        Enumerate the complete function table of a variable.

        Inputs are the regulators *declared* by relationships, not the
        variables that appear in the formula. Variables without a formula use
        the default function. Constant variables have exactly one row whose
        output is either ``0`` or the constant level.

        The table has ``prod(max - min + 1)`` rows over all regulators, so it
        grows exponentially with the number of regulators. A warning is
        issued past ``LARGE_TABLE_WARNING_ROWS`` rows.

        **Parameters:**

            - var_id (int): The variable.

        **Returns:**

            - FunctionTable: Rows with the last regulator varying fastest.

        **Raises:**

            - EvaluationError: If the variable or a regulator does not exist,
              or evaluation fails (see :meth:`evaluate`).
            - InvalidUpdateFunction: If the stored formula failed to parse.
            - ModelConversionError: If a constant variable has regulators or
              a function inconsistent with its level.
        """
        target = self._get_variable(var_id, 'Target')
        if target.formula is None:
            function = self.build_default_update_function(var_id)
        elif isinstance(target.formula, InvalidUpdateFunction):
            raise target.formula
        else:
            function = target.formula

        regulators = []
        for reg_id in sorted(self.get_regulators(var_id)):
            regulator = self.find_variable(reg_id)
            if regulator is None:
                raise EvaluationError(f"Regulator variable `{reg_id}` does not exist")
            regulators.append(regulator)

        if target.has_constant_range():
            if len(regulators) > 0:
                raise ModelConversionError("Constant variable cannot have regulators.")
            value = function.as_constant()
            if value is None:
                raise ModelConversionError("Non-constant function in constant variable.")
            if value < 0:
                raise ModelConversionError("Constant value cannot be negative.")
            if value != 0 and value != target.min_level():
                raise ModelConversionError("Constant value does not match variable level.")
            return FunctionTable([], [({}, value)])

        row_count = 1
        for regulator in regulators:
            row_count *= regulator.max_level() - regulator.min_level() + 1
        if row_count > LARGE_TABLE_WARNING_ROWS:
            warnings.warn(f"Function table of variable `{var_id}` has {row_count} rows.",
                          UserWarning, stacklevel=2)

        levels = [range(r.min_level(), r.max_level() + 1) for r in regulators]
        rows = []
        for combination in itertools.product(*levels):
            normalized = {}
            for regulator, level in zip(regulators, combination):
                normalized[regulator.id] = target.normalize_input_level(regulator, level)
            output = target.normalize_output_level(function.evaluate_raw(normalized))
            rows.append((dict(zip([r.id for r in regulators], combination)), output))
        return FunctionTable([r.id for r in regulators], rows)

    # Validation

    def validate(self) -> list:
        """
        Check the structural consistency of the network.

        **Returns:**

            - list[str]: Human readable issues; empty if the network is valid.
              Issues cover duplicate variable or relationship IDs, empty
              names, invalid ranges, formulas that failed to parse, and
              relationships referencing unknown variables.
        """
        issues = []
        seen_ids = set()
        for variable in self.variables:
            prefix = f"(Variable id: `{variable.id}`)"
            if variable.id in seen_ids:
                issues.append(f"{prefix} Id must be unique within the enclosing `BmaNetwork`")
            seen_ids.add(variable.id)
            if variable.name is not None and variable.name == '':
                issues.append(f"{prefix} Name cannot be empty; use `None` instead")
            if variable.min_level() > variable.max_level():
                issues.append(f"{prefix} Range `{variable.range}` is invalid; must be a non-empty interval")
            if isinstance(variable.formula, InvalidUpdateFunction):
                issues.append(f"{prefix} {variable.formula}")

        seen_ids = set()
        for relationship in self.relationships:
            prefix = f"(Relationship id: `{relationship.id}`)"
            if relationship.id in seen_ids:
                issues.append(f"{prefix} Id must be unique within the enclosing `BmaNetwork`")
            seen_ids.add(relationship.id)
            for endpoint in (relationship.from_variable, relationship.to_variable):
                if self.find_variable(endpoint) is None:
                    issues.append(f"{prefix} Variable `{endpoint}` does not exist")
        return issues
