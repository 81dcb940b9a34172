#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Expression trees of BMA update functions.

This module defines :class:`~bmaforge.UpdateFunction`, the immutable syntax
tree of the small arithmetic language BMA uses for target functions:

    - integer constants and variable references ``var(ID)``,
    - binary operators ``+``, ``-``, ``*``, ``/``,
    - unary functions ``abs``, ``ceil``, ``floor``,
    - aggregations ``min``, ``max``, ``avg`` over one or more arguments.

Nodes never change after construction. Transformations build new nodes
bottom-up and freely share existing subtrees, so one tree can be referenced
from many places at once.

Evaluation is exact: all intermediate values are :class:`fractions.Fraction`
instances, never floats.
"""

import math
from enum import Enum
from fractions import Fraction

from typing import Optional
from collections.abc import Mapping, Sequence

from bmaforge.errors import EvaluationError, InvalidUpdateFunction, ModelConversionError
from bmaforge.boolean_formula import BinaryOp, BooleanFormula, FormulaKind

__all__ = [
    "ArithOp",
    "UnaryFn",
    "AggregateFn",
    "NodeKind",
    "Literal",
    "UpdateFunction",
]


class ArithOp(Enum):
    """Binary arithmetic operators admissible in BMA expressions."""
    PLUS = '+'
    MINUS = '-'
    MULT = '*'
    DIV = '/'

    def __str__(self):
        return self.value

    @classmethod
    def try_from(cls, symbol : str) -> Optional["ArithOp"]:
        for op in cls:
            if op.value == symbol:
                return op
        return None


class UnaryFn(Enum):
    """Unary functions admissible in BMA expressions."""
    CEIL = 'ceil'
    FLOOR = 'floor'
    ABS = 'abs'

    def __str__(self):
        return self.value

    @classmethod
    def try_from(cls, name : str) -> Optional["UnaryFn"]:
        for fn in cls:
            if fn.value == name:
                return fn
        return None


class AggregateFn(Enum):
    """Aggregation functions admissible in BMA expressions."""
    MIN = 'min'
    MAX = 'max'
    AVG = 'avg'

    def __str__(self):
        return self.value

    @classmethod
    def try_from(cls, name : str) -> Optional["AggregateFn"]:
        for fn in cls:
            if fn.value == name:
                return fn
        return None


class NodeKind(Enum):
    TERMINAL = 'terminal'
    UNARY = 'unary'
    ARITHMETIC = 'arithmetic'
    AGGREGATION = 'aggregation'


class Literal(object):
    """
    An atomic value: either an integer constant or a variable referenced by
    its ID. Variables referenced by name are resolved to IDs by the tokenizer.
    """

    __slots__ = ['is_variable', 'value']

    def __init__(self, value : int, is_variable : bool = False):
        self.value = int(value)
        self.is_variable = is_variable

    @classmethod
    def constant(cls, value : int) -> "Literal":
        return cls(value, is_variable=False)

    @classmethod
    def variable(cls, var_id : int) -> "Literal":
        return cls(var_id, is_variable=True)

    def __str__(self):
        if self.is_variable:
            return f"var({self.value})"
        return str(self.value)

    def __repr__(self):
        return f"{type(self).__name__}({str(self)!r})"

    def __eq__(self, other):
        return (isinstance(other, Literal) and self.is_variable == other.is_variable
                and self.value == other.value)

    def __hash__(self):
        return hash((self.is_variable, self.value))


class UpdateFunction(object):
    """
    An immutable node of a BMA update function expression tree.

    The node kinds form a closed set (see :class:`NodeKind`); every algorithm
    over the tree dispatches on ``kind`` explicitly.

    **Members:**

        - kind (NodeKind): The kind of this node.
        - literal (Literal | None): Value of a terminal node.
        - op (ArithOp | UnaryFn | AggregateFn | None): Operator of a
          non-terminal node.
        - children (tuple[UpdateFunction]): Operands, in order.
        - height (int): 0 for terminals, otherwise ``1 + max(child heights)``.

    Use the ``mk_*`` constructors (or :meth:`parse`) instead of calling the
    constructor directly.
    """

    __slots__ = ['kind', 'literal', 'op', 'children', 'height', '_string']

    def __init__(self, kind : NodeKind, literal : Optional[Literal] = None, op = None,
                 children : Sequence["UpdateFunction"] = ()):
        children = tuple(children)
        if kind == NodeKind.TERMINAL:
            assert literal is not None and len(children) == 0, "terminal nodes hold exactly one literal"
            string = str(literal)
            height = 0
        elif kind == NodeKind.UNARY:
            assert isinstance(op, UnaryFn) and len(children) == 1, "unary nodes hold exactly one child"
            string = f"{op}({children[0]})"
            height = 1 + children[0].height
        elif kind == NodeKind.ARITHMETIC:
            assert isinstance(op, ArithOp) and len(children) == 2, "arithmetic nodes hold exactly two children"
            string = f"({children[0]} {op} {children[1]})"
            height = 1 + max(children[0].height, children[1].height)
        elif kind == NodeKind.AGGREGATION:
            assert isinstance(op, AggregateFn), "aggregation nodes need an aggregation function"
            string = f"{op}({', '.join(str(child) for child in children)})"
            height = 1 + max((child.height for child in children), default=0)
        else:
            raise TypeError(f"Unknown node kind {kind!r}")
        object.__setattr__(self, 'kind', kind)
        object.__setattr__(self, 'literal', literal)
        object.__setattr__(self, 'op', op)
        object.__setattr__(self, 'children', children)
        object.__setattr__(self, 'height', height)
        object.__setattr__(self, '_string', string)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __delattr__(self, name):
        raise AttributeError(f"{type(self).__name__} is immutable")

    # Constructors

    @classmethod
    def mk_constant(cls, value : int) -> "UpdateFunction":
        return cls(NodeKind.TERMINAL, literal=Literal.constant(value))

    @classmethod
    def mk_variable(cls, var_id : int) -> "UpdateFunction":
        return cls(NodeKind.TERMINAL, literal=Literal.variable(var_id))

    @classmethod
    def mk_unary(cls, op : UnaryFn, child : "UpdateFunction") -> "UpdateFunction":
        return cls(NodeKind.UNARY, op=op, children=(child,))

    @classmethod
    def mk_arithmetic(cls, op : ArithOp, left : "UpdateFunction",
                      right : "UpdateFunction") -> "UpdateFunction":
        return cls(NodeKind.ARITHMETIC, op=op, children=(left, right))

    @classmethod
    def mk_aggregation(cls, op : AggregateFn,
                       arguments : Sequence["UpdateFunction"]) -> "UpdateFunction":
        """
        Create an aggregation node. An empty argument list is accepted here
        (the parser never produces one), but such a node cannot be evaluated.
        """
        return cls(NodeKind.AGGREGATION, op=op, children=arguments)

    # Parsing

    @classmethod
    def parse(cls, expression : str,
              variable_id_hint : Sequence[tuple] = ()) -> "UpdateFunction":
        """
        Parse an update function from its BMA string representation.

        **Parameters:**

            - expression (str): The formula, e.g. ``'avg(var(1), var(x)) - 1'``.
            - variable_id_hint (list[tuple[int, str]], optional): Pairs
              ``(id, name)`` used to resolve variables referenced by name.

        **Returns:**

            - UpdateFunction: The root of the parsed tree.

        **Raises:**

            - InvalidUpdateFunction: If the expression cannot be tokenized or
              parsed. The error carries the expression and the position.
        """
        from bmaforge.parser import parse_bma_formula
        from bmaforge.errors import ParserError
        try:
            return parse_bma_formula(expression, variable_id_hint)
        except ParserError as e:
            raise InvalidUpdateFunction.from_parser_error(e, expression) from e

    @classmethod
    def from_string(cls, expression : str) -> "UpdateFunction":
        """Parse an expression that references variables only by ID."""
        return cls.parse(expression, ())

    @classmethod
    def parse_optional(cls, expression : Optional[str],
                       variable_id_hint : Sequence[tuple] = ()) -> Optional["UpdateFunction"]:
        """
        Same as :meth:`parse`, but returns ``None`` for a missing or blank
        expression.
        """
        if expression is None or expression.strip() == '':
            return None
        return cls.parse(expression, variable_id_hint)

    # Data access

    def __str__(self):
        return self._string

    def __repr__(self):
        return f"{type(self).__name__}({self._string!r})"

    def __eq__(self, other):
        # The canonical string identifies the tree structure uniquely.
        return isinstance(other, UpdateFunction) and self._string == other._string

    def __hash__(self):
        return hash(self._string)

    def as_bma_string(self) -> str:
        return self._string

    def as_constant(self) -> Optional[int]:
        """Return the value of a constant terminal, ``None`` for anything else."""
        if self.kind == NodeKind.TERMINAL and not self.literal.is_variable:
            return self.literal.value
        return None

    def as_variable(self) -> Optional[int]:
        """Return the ID of a variable terminal, ``None`` for anything else."""
        if self.kind == NodeKind.TERMINAL and self.literal.is_variable:
            return self.literal.value
        return None

    def collect_variables(self) -> set:
        """
        Collect the IDs of all variables referenced in this expression.

        **Returns:**

            - set[int]: Variable IDs.
        """
        result = set()
        stack = [self]
        while len(stack) > 0:
            node = stack.pop()
            if node.kind == NodeKind.TERMINAL:
                if node.literal.is_variable:
                    result.add(node.literal.value)
            elif node.kind in (NodeKind.UNARY, NodeKind.ARITHMETIC, NodeKind.AGGREGATION):
                stack.extend(node.children)
            else:
                raise TypeError(f"Unknown node kind {node.kind!r}")
        return result

    # Evaluation

    def evaluate_raw(self, valuation : Mapping) -> Fraction:
        """
        Evaluate the expression exactly, without rounding or truncating the
        result to any variable range.

        The valuation is expected to be already *normalized*: BMA rescales
        every input from the range of the regulator to the range of the
        regulated variable before plugging it in (see
        :meth:`bmaforge.BmaVariable.normalize_input_level`). If a variable X
        with range [a,b] appears in the function of Y with range [c,d], it is
        replaced by (X-a)*(d-c)/(b-a)+c. Constants ([n,n]) are not rescaled.

        **Parameters:**

            - valuation (dict[int, Fraction | int | Decimal]): Value of every
              variable referenced by the expression.

        **Returns:**

            - Fraction: The exact value of the expression.

        **Raises:**

            - EvaluationError: If a referenced variable is missing from
              ``valuation``, on division by zero, or if an aggregation has no
              arguments (the parser never builds those, but a hand-built tree
              might).
        """
        values = []
        stack = [(self, False)]
        while len(stack) > 0:
            node, expanded = stack.pop()
            if node.kind == NodeKind.TERMINAL:
                values.append(node._evaluate_terminal(valuation))
            elif not expanded:
                # Children are evaluated left to right before their parent.
                stack.append((node, True))
                stack.extend((child, False) for child in reversed(node.children))
            else:
                split = len(values) - len(node.children)
                arguments = values[split:]
                del values[split:]
                values.append(node._apply(arguments))
        return values[0]

    def _evaluate_terminal(self, valuation : Mapping) -> Fraction:
        if not self.literal.is_variable:
            return Fraction(self.literal.value)
        var_id = self.literal.value
        if var_id not in valuation:
            raise EvaluationError(f"Missing input value for variable `{var_id}`")
        return Fraction(valuation[var_id])

    def _apply(self, arguments : list) -> Fraction:
        """Apply the operator of a non-terminal node to its evaluated children."""
        if self.kind == NodeKind.ARITHMETIC:
            left, right = arguments
            if self.op == ArithOp.PLUS:
                return left + right
            elif self.op == ArithOp.MINUS:
                return left - right
            elif self.op == ArithOp.MULT:
                return left * right
            if right == 0:
                raise EvaluationError("Division by zero")
            return left / right
        elif self.kind == NodeKind.UNARY:
            value, = arguments
            if self.op == UnaryFn.ABS:
                return abs(value)
            elif self.op == UnaryFn.CEIL:
                return Fraction(math.ceil(value))
            return Fraction(math.floor(value))
        elif self.kind == NodeKind.AGGREGATION:
            if len(arguments) == 0:
                raise EvaluationError(f"At least one argument is required for `{self.op}`")
            if self.op == AggregateFn.AVG:
                return sum(arguments, Fraction(0)) / len(arguments)
            elif self.op == AggregateFn.MAX:
                return max(arguments)
            return min(arguments)
        raise TypeError(f"Unknown node kind {self.kind!r}")

    # Boolean bridge

    @classmethod
    def try_from_boolean_formula(cls, formula : BooleanFormula) -> "UpdateFunction":
        """
        Translate a Boolean formula into an equivalent BMA arithmetic
        expression. Variable IDs are taken over unchanged.

        Every operator is encoded so that each sub-expression stays within
        [0, 1] whenever its inputs are within [0, 1]:

            - !A      -> 1 - A
            - A & B   -> A * B
            - A | B   -> A + B - A * B
            - A ^ B   -> A + B - 2 * (A * B)
            - A <=> B -> 1 - (A ^ B)
            - A => B  -> (1 - A) + A * B

        **Raises:**

            - ModelConversionError: If the formula contains uninterpreted
              function symbols (parameters).
        """
        parameters = formula.collect_parameters()
        if len(parameters) > 0:
            raise ModelConversionError(f"Found unsupported parameters {sorted(parameters)}")
        return cls._from_boolean_formula_rec(formula)

    @classmethod
    def _from_boolean_formula_rec(cls, formula : BooleanFormula) -> "UpdateFunction":
        if formula.kind == FormulaKind.CONST:
            return cls.mk_constant(int(formula.value))
        elif formula.kind == FormulaKind.VAR:
            return cls.mk_variable(formula.value)
        elif formula.kind == FormulaKind.NOT:
            return _one_minus(cls._from_boolean_formula_rec(formula.children[0]))
        elif formula.kind == FormulaKind.BINARY:
            left = cls._from_boolean_formula_rec(formula.children[0])
            right = cls._from_boolean_formula_rec(formula.children[1])
            if formula.op == BinaryOp.AND:
                return cls.mk_arithmetic(ArithOp.MULT, left, right)
            elif formula.op == BinaryOp.OR:
                total = cls.mk_arithmetic(ArithOp.PLUS, left, right)
                product = cls.mk_arithmetic(ArithOp.MULT, left, right)
                return cls.mk_arithmetic(ArithOp.MINUS, total, product)
            elif formula.op == BinaryOp.XOR:
                return _xor(left, right)
            elif formula.op == BinaryOp.IFF:
                return _one_minus(_xor(left, right))
            elif formula.op == BinaryOp.IMP:
                product = cls.mk_arithmetic(ArithOp.MULT, left, right)
                return cls.mk_arithmetic(ArithOp.PLUS, _one_minus(left), product)
            raise TypeError(f"Unknown Boolean operator {formula.op!r}")
        # Parameters are rejected before the recursion starts.
        raise AssertionError(f"Unsupported Boolean formula node {formula.kind!r}")


def _one_minus(expression : UpdateFunction) -> UpdateFunction:
    return UpdateFunction.mk_arithmetic(ArithOp.MINUS, UpdateFunction.mk_constant(1), expression)


def _xor(left : UpdateFunction, right : UpdateFunction) -> UpdateFunction:
    total = UpdateFunction.mk_arithmetic(ArithOp.PLUS, left, right)
    product = UpdateFunction.mk_arithmetic(ArithOp.MULT, left, right)
    double = UpdateFunction.mk_arithmetic(ArithOp.MULT, UpdateFunction.mk_constant(2), product)
    return UpdateFunction.mk_arithmetic(ArithOp.MINUS, total, double)
