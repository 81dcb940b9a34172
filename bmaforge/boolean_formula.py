#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Boolean update formulas of a Boolean network.

A :class:`BooleanFormula` is an immutable logical formula over the variables
of a network, which are referenced by their integer index. Besides constants,
variables, negation and the binary connectives ``&``, ``|``, ``^``, ``=>`` and
``<=>``, a formula may contain *parameters*: uninterpreted function symbols
such as ``f(a, b)`` whose truth table is not known.

The textual syntax is the one commonly used by Boolean network tools::

    !a & (b | c) => f(a, d)

Precedence, from loosest to tightest: ``<=>``, ``=>``, ``|``, ``^``, ``&``,
``!``. Implication associates to the right, everything else to the left.

@author: bmaforge developers
"""

import re
from enum import Enum

from typing import Optional
from collections.abc import Mapping, Sequence

from bmaforge.errors import EvaluationError, ParseError

__all__ = [
    "FormulaKind",
    "BinaryOp",
    "BooleanFormula",
]


class FormulaKind(Enum):
    CONST = 'const'
    VAR = 'var'
    NOT = 'not'
    BINARY = 'binary'
    PARAM = 'param'


class BinaryOp(Enum):
    AND = '&'
    OR = '|'
    XOR = '^'
    IMP = '=>'
    IFF = '<=>'

    def __str__(self):
        return self.value


# Loosest first.
_PRECEDENCE = [BinaryOp.IFF, BinaryOp.IMP, BinaryOp.OR, BinaryOp.XOR, BinaryOp.AND]

_TOKEN_PATTERN = re.compile(r"\s*(?:(<=>|=>|[!~&|^(),])|([A-Za-z0-9_.]+))")


class BooleanFormula(object):
    """
    An immutable node of a Boolean formula.

    **Members:**

        - kind (FormulaKind): The node kind.
        - value (bool | int | str | None): The constant value (``CONST``),
          variable index (``VAR``) or parameter name (``PARAM``).
        - op (BinaryOp | None): Connective of a ``BINARY`` node.
        - children (tuple[BooleanFormula]): Operand(s) of ``NOT`` and
          ``BINARY`` nodes, arguments of ``PARAM`` nodes.
    """

    __slots__ = ['kind', 'value', 'op', 'children', '_key']

    def __init__(self, kind : FormulaKind, value = None, op : Optional[BinaryOp] = None,
                 children : Sequence["BooleanFormula"] = ()):
        children = tuple(children)
        if kind == FormulaKind.CONST:
            key = 'true' if value else 'false'
            value = bool(value)
        elif kind == FormulaKind.VAR:
            key = f"#{value}"
        elif kind == FormulaKind.NOT:
            assert len(children) == 1
            key = f"!{children[0]._key}"
        elif kind == FormulaKind.BINARY:
            assert isinstance(op, BinaryOp) and len(children) == 2
            key = f"({children[0]._key} {op} {children[1]._key})"
        elif kind == FormulaKind.PARAM:
            key = f"{value}({', '.join(child._key for child in children)})"
        else:
            raise TypeError(f"Unknown formula kind {kind!r}")
        object.__setattr__(self, 'kind', kind)
        object.__setattr__(self, 'value', value)
        object.__setattr__(self, 'op', op)
        object.__setattr__(self, 'children', children)
        object.__setattr__(self, '_key', key)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __eq__(self, other):
        return isinstance(other, BooleanFormula) and self._key == other._key

    def __hash__(self):
        return hash(self._key)

    def __repr__(self):
        return f"BooleanFormula({self._key!r})"

    # Constructors

    @classmethod
    def mk_const(cls, value : bool) -> "BooleanFormula":
        return cls(FormulaKind.CONST, value=value)

    @classmethod
    def mk_var(cls, index : int) -> "BooleanFormula":
        return cls(FormulaKind.VAR, value=int(index))

    @classmethod
    def mk_not(cls, child : "BooleanFormula") -> "BooleanFormula":
        return cls(FormulaKind.NOT, children=(child,))

    @classmethod
    def mk_binary(cls, op : BinaryOp, left : "BooleanFormula",
                  right : "BooleanFormula") -> "BooleanFormula":
        return cls(FormulaKind.BINARY, op=op, children=(left, right))

    @classmethod
    def mk_param(cls, name : str, arguments : Sequence["BooleanFormula"] = ()) -> "BooleanFormula":
        return cls(FormulaKind.PARAM, value=name, children=arguments)

    @classmethod
    def mk_literal(cls, index : int, positive : bool = True) -> "BooleanFormula":
        var = cls.mk_var(index)
        return var if positive else cls.mk_not(var)

    @classmethod
    def mk_conjunction(cls, items : Sequence["BooleanFormula"]) -> "BooleanFormula":
        """Left-nested conjunction; ``true`` for an empty list."""
        return cls._fold(BinaryOp.AND, items, True)

    @classmethod
    def mk_disjunction(cls, items : Sequence["BooleanFormula"]) -> "BooleanFormula":
        """Left-nested disjunction; ``false`` for an empty list."""
        return cls._fold(BinaryOp.OR, items, False)

    @classmethod
    def _fold(cls, op : BinaryOp, items, empty_value : bool) -> "BooleanFormula":
        items = list(items)
        if len(items) == 0:
            return cls.mk_const(empty_value)
        result = items[0]
        for item in items[1:]:
            result = cls.mk_binary(op, result, item)
        return result

    # Queries

    def as_const(self) -> Optional[bool]:
        return self.value if self.kind == FormulaKind.CONST else None

    def collect_variables(self) -> set:
        """Indices of all variables used by the formula (parameter arguments included)."""
        if self.kind == FormulaKind.VAR:
            return {self.value}
        result = set()
        for child in self.children:
            result |= child.collect_variables()
        return result

    def collect_parameters(self) -> set:
        """Names of all parameters (uninterpreted functions) used by the formula."""
        result = {self.value} if self.kind == FormulaKind.PARAM else set()
        for child in self.children:
            result |= child.collect_parameters()
        return result

    def evaluate(self, valuation) -> bool:
        """
        Evaluate the formula.

        **Parameters:**

            - valuation (dict[int, bool] | list[bool]): Value of every
              variable, by index.

        **Returns:**

            - bool: The truth value.

        **Raises:**

            - EvaluationError: If a variable has no value or the formula
              contains parameters.
        """
        if self.kind == FormulaKind.CONST:
            return self.value
        elif self.kind == FormulaKind.VAR:
            try:
                return bool(valuation[self.value])
            except (KeyError, IndexError):
                raise EvaluationError(f"Missing input value for variable `{self.value}`") from None
        elif self.kind == FormulaKind.NOT:
            return not self.children[0].evaluate(valuation)
        elif self.kind == FormulaKind.BINARY:
            left = self.children[0].evaluate(valuation)
            right = self.children[1].evaluate(valuation)
            if self.op == BinaryOp.AND:
                return left and right
            elif self.op == BinaryOp.OR:
                return left or right
            elif self.op == BinaryOp.XOR:
                return left != right
            elif self.op == BinaryOp.IFF:
                return left == right
            return (not left) or right
        raise EvaluationError(f"Cannot evaluate uninterpreted parameter `{self.value}`")

    # Text

    def to_string(self, names : Sequence[str] = None, BNET : bool = False) -> str:
        """
        Render the formula as text.

        **Parameters:**

            - names (list[str], optional): Variable names by index. Without
              names, variables are rendered as ``x<index>``.
            - BNET (bool, optional): Render in the restricted ``.bnet``
              dialect: constants are ``0``/``1`` and ``^``, ``=>``, ``<=>``
              are expanded into ``&``, ``|`` and ``!``. Parameters are not
              representable in that dialect.

        **Returns:**

            - str: The formula text. Nested binary operations are always
              parenthesized.
        """
        if names is None:
            def name_of(index):
                return f"x{index}"
        else:
            def name_of(index):
                return names[index]
        return self._to_string(name_of, BNET, top_level=True)

    def _to_string(self, name_of, BNET : bool, top_level : bool = False) -> str:
        if self.kind == FormulaKind.CONST:
            if BNET:
                return '1' if self.value else '0'
            return 'true' if self.value else 'false'
        elif self.kind == FormulaKind.VAR:
            return name_of(self.value)
        elif self.kind == FormulaKind.NOT:
            return '!' + self.children[0]._to_string(name_of, BNET)
        elif self.kind == FormulaKind.PARAM:
            if BNET:
                raise ValueError(f"Parameter `{self.value}` cannot be written in the bnet format")
            arguments = ', '.join(child._to_string(name_of, BNET, top_level=True) for child in self.children)
            return f"{self.value}({arguments})"
        left, right = self.children
        if BNET and self.op not in (BinaryOp.AND, BinaryOp.OR):
            expanded = _expand_to_and_or(self.op, left, right)
            return expanded._to_string(name_of, BNET, top_level)
        text = f"{left._to_string(name_of, BNET)} {self.op} {right._to_string(name_of, BNET)}"
        return text if top_level else f"({text})"

    def __str__(self):
        return self.to_string()

    @classmethod
    def parse(cls, text : str, variables : Sequence[str]) -> "BooleanFormula":
        """
        Parse a formula.

        **Parameters:**

            - text (str): Formula text. ``true``/``false`` and ``1``/``0`` are
              constants, ``!`` and ``~`` are negation.
            - variables (list[str] | dict[str, int]): Variable names (a name
              is resolved to its index) or an explicit name to index map.

        **Returns:**

            - BooleanFormula: The parsed formula. A name followed by an
              argument list, e.g. ``f(a, b)``, is a parameter.

        **Raises:**

            - ParseError: On malformed input or an unknown variable name.
        """
        if isinstance(variables, Mapping):
            index_of = dict(variables)
        else:
            index_of = {name: index for (index, name) in enumerate(variables)}
        return _FormulaParser(text, index_of).parse()


def _expand_to_and_or(op : BinaryOp, left : BooleanFormula, right : BooleanFormula) -> BooleanFormula:
    mk = BooleanFormula
    if op == BinaryOp.IMP:
        return mk.mk_binary(BinaryOp.OR, mk.mk_not(left), right)
    xor = mk.mk_binary(BinaryOp.OR,
                       mk.mk_binary(BinaryOp.AND, left, mk.mk_not(right)),
                       mk.mk_binary(BinaryOp.AND, mk.mk_not(left), right))
    if op == BinaryOp.XOR:
        return xor
    return mk.mk_binary(BinaryOp.OR,
                        mk.mk_binary(BinaryOp.AND, left, right),
                        mk.mk_binary(BinaryOp.AND, mk.mk_not(left), mk.mk_not(right)))


class _FormulaParser(object):
    """Recursive descent parser over a pre-tokenized formula."""

    def __init__(self, text : str, index_of : dict):
        self.text = text
        self.index_of = index_of
        self.tokens = []
        position = 0
        while True:
            match = _TOKEN_PATTERN.match(text, position)
            if match is None:
                rest = text[position:]
                if rest.strip() == '':
                    break
                bad = position + len(rest) - len(rest.lstrip())
                raise ParseError(bad, f"Unexpected `{text[bad]}`")
            token = match.group(1) or match.group(2)
            self.tokens.append((token, match.start(match.lastindex)))
            position = match.end()
        self.tokens.append((None, len(text)))
        self.current = 0

    def peek(self):
        return self.tokens[self.current][0]

    def position(self) -> int:
        return self.tokens[self.current][1]

    def advance(self):
        token = self.tokens[self.current]
        self.current += 1
        return token

    def expect(self, expected : str):
        token, position = self.advance()
        if token != expected:
            found = 'end of input' if token is None else f"`{token}`"
            raise ParseError(position, f"Expected `{expected}`, found {found}")

    def parse(self) -> BooleanFormula:
        if self.peek() is None:
            raise ParseError(0, "Expression is empty")
        formula = self.parse_level(0)
        if self.peek() is not None:
            raise ParseError(self.position(), f"Unexpected `{self.peek()}`")
        return formula

    def parse_level(self, level : int) -> BooleanFormula:
        if level == len(_PRECEDENCE):
            return self.parse_unary()
        op = _PRECEDENCE[level]
        left = self.parse_level(level + 1)
        if op == BinaryOp.IMP:
            if self.peek() == op.value:
                self.advance()
                return BooleanFormula.mk_binary(op, left, self.parse_level(level))
            return left
        while self.peek() == op.value:
            self.advance()
            left = BooleanFormula.mk_binary(op, left, self.parse_level(level + 1))
        return left

    def parse_unary(self) -> BooleanFormula:
        token, position = self.advance()
        if token in ('!', '~'):
            return BooleanFormula.mk_not(self.parse_unary())
        elif token == '(':
            inner = self.parse_level(0)
            self.expect(')')
            return inner
        elif token is None:
            raise ParseError(position, "Unexpected end of input")
        elif token in ('true', '1'):
            return BooleanFormula.mk_const(True)
        elif token in ('false', '0'):
            return BooleanFormula.mk_const(False)
        elif token[0].isalnum() or token[0] in '_.':
            if self.peek() == '(':
                return self.parse_parameter(token)
            if token not in self.index_of:
                raise ParseError(position, f"Unknown variable `{token}`")
            return BooleanFormula.mk_var(self.index_of[token])
        raise ParseError(position, f"Unexpected `{token}`")

    def parse_parameter(self, name : str) -> BooleanFormula:
        self.expect('(')
        arguments = []
        if self.peek() == ')':
            self.advance()
            return BooleanFormula.mk_param(name, arguments)
        while True:
            arguments.append(self.parse_level(0))
            token, position = self.advance()
            if token == ')':
                return BooleanFormula.mk_param(name, arguments)
            if token != ',':
                found = 'end of input' if token is None else f"`{token}`"
                raise ParseError(position, f"Expected `,` or `)`, found {found}")
