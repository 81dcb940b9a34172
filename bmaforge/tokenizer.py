#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tokenizer of BMA update function formulas.

A formula is turned into a *token tree*: parenthesized groups and function
arguments become nested token lists, so that the parser can work on one
precedence level at a time without ever looking at characters again.

@author: bmaforge developers
"""

import re
from enum import Enum

from collections.abc import Mapping

from bmaforge.errors import TokenizationError
from bmaforge.expression import AggregateFn, ArithOp, Literal, UnaryFn

__all__ = [
    "TokenKind",
    "BmaToken",
    "tokenize_bma_formula",
]

_INT32_MAX = 2**31 - 1
_UINT32_MAX = 2**32 - 1
_DECIMAL_ID = re.compile(r"[0-9]+")


class TokenKind(Enum):
    ATOMIC = 'atomic'
    UNARY = 'unary'
    BINARY = 'binary'
    AGGREGATE = 'aggregate'
    GROUP = 'group'


class BmaToken(object):
    """
    A single token of a BMA formula.

    **Members:**

        - kind (TokenKind): Token kind.
        - position (int): Character offset in the original formula.
        - value (Literal | ArithOp | UnaryFn | AggregateFn | None): Payload of
          atomic, binary and function tokens.
        - tokens (list[BmaToken]): Content of a ``GROUP`` token, or the
          argument groups of ``UNARY`` and ``AGGREGATE`` tokens (every
          argument is itself a ``GROUP``).
    """

    __slots__ = ['kind', 'position', 'value', 'tokens']

    def __init__(self, kind : TokenKind, position : int, value = None, tokens : list = None):
        self.kind = kind
        self.position = position
        self.value = value
        self.tokens = [] if tokens is None else list(tokens)

    @classmethod
    def atomic(cls, literal : Literal, position : int) -> "BmaToken":
        return cls(TokenKind.ATOMIC, position, value=literal)

    @classmethod
    def binary(cls, op : ArithOp, position : int) -> "BmaToken":
        return cls(TokenKind.BINARY, position, value=op)

    @classmethod
    def unary(cls, op : UnaryFn, argument : "BmaToken", position : int) -> "BmaToken":
        return cls(TokenKind.UNARY, position, value=op, tokens=[argument])

    @classmethod
    def aggregate(cls, op : AggregateFn, arguments : list, position : int) -> "BmaToken":
        return cls(TokenKind.AGGREGATE, position, value=op, tokens=arguments)

    @classmethod
    def group(cls, tokens : list, position : int) -> "BmaToken":
        return cls(TokenKind.GROUP, position, tokens=tokens)

    def __str__(self):
        if self.kind in (TokenKind.ATOMIC, TokenKind.BINARY):
            return str(self.value)
        elif self.kind in (TokenKind.UNARY, TokenKind.AGGREGATE):
            return f"{self.value}({', '.join(str(arg) for arg in self.tokens)})"
        return f"({' '.join(str(token) for token in self.tokens)})"

    def __repr__(self):
        return f"BmaToken({self.kind.name}, {str(self)!r}, position={self.position})"

    def __eq__(self, other):
        return (isinstance(other, BmaToken) and self.kind == other.kind
                and self.position == other.position and self.value == other.value
                and self.tokens == other.tokens)

    def __hash__(self):
        return hash((self.kind, self.position, self.value, tuple(self.tokens)))


def tokenize_bma_formula(formula : str, variable_id_hint = ()) -> list:
    """
    Tokenize a BMA update function formula.

    **Parameters:**

        - formula (str): The formula string.
        - variable_id_hint (list[tuple[int, str]] | dict[int, str], optional):
          Variable IDs with their names. Needed when a formula references
          variables by name (``var(CycD)``) instead of by ID (``var(7)``).

    **Returns:**

        - list[BmaToken]: Top-level tokens of the formula.

    **Raises:**

        - TokenizationError: With the position of the offending character in
          ``formula``.

    **Example:**

        >>> tokenize_bma_formula('min(var(a), 1)', [(3, 'a')])
        [BmaToken(AGGREGATE, 'min((var(3)), (1))', position=0)]
    """
    if isinstance(variable_id_hint, Mapping):
        variable_id_hint = list(variable_id_hint.items())
    tokens, length = _tokenize_recursive(formula, 0, False, False, variable_id_hint)
    assert length == len(formula), "tokenizer must consume the whole input"
    return tokens


def _tokenize_recursive(formula : str, start_at : int, ends_with_comma : bool,
                        ends_with_parenthesis : bool, variable_id_hint) -> tuple:
    """
    Tokenize ``formula`` from ``start_at`` until the expected terminator.

    With ``ends_with_comma`` or ``ends_with_parenthesis``, tokenization stops
    right after the corresponding delimiter (which is counted as consumed).
    Otherwise the whole remaining input is tokenized.

    Returns the token list and the number of consumed characters.
    """
    result = []
    position = start_at

    while position < len(formula):
        c = formula[position]
        if c == ',':
            if ends_with_comma:
                return result, position - start_at + 1
            elif ends_with_parenthesis:
                raise TokenizationError(position, "Unclosed parenthesis (group closed by `,` before `)` was found)")
            raise TokenizationError(position, "Unexpected `,`")
        elif c == ')':
            if ends_with_parenthesis:
                return result, position - start_at + 1
            raise TokenizationError(position, "Unexpected `)` (missing opening `(`)")
        elif c.isspace():
            position += 1
        elif c in '+-*/':
            result.append(BmaToken.binary(ArithOp.try_from(c), position))
            position += 1
        elif c == '(':
            position += 1
            group, length = _tokenize_recursive(formula, position, False, True, variable_id_hint)
            result.append(BmaToken.group(group, position))
            position += length
        elif '0' <= c <= '9':
            number = _collect_number(formula, position)
            if int(number) > _INT32_MAX:
                raise TokenizationError(position, f"Invalid number `{number}`: number too large to fit in target type")
            result.append(BmaToken.atomic(Literal.constant(int(number)), position))
            position += len(number)
        elif _is_valid_name_start(c):
            identifier_start = position
            identifier = _collect_identifier(formula, position)
            position += len(identifier)
            if AggregateFn.try_from(identifier) is not None:
                arguments, length = _collect_function_arguments(formula, position, variable_id_hint)
                if len(arguments) == 0:
                    raise TokenizationError(position, f"Function `{identifier}` expects at least one argument")
                result.append(BmaToken.aggregate(AggregateFn.try_from(identifier), arguments, identifier_start))
                position += length
            elif UnaryFn.try_from(identifier) is not None:
                arguments, length = _collect_function_arguments(formula, position, variable_id_hint)
                if len(arguments) == 0:
                    raise TokenizationError(position + length - 1, "Argument is empty")
                if len(arguments) != 1:
                    raise TokenizationError(position, f"Function `{identifier}` expects exactly one argument; found `{len(arguments)}`")
                result.append(BmaToken.unary(UnaryFn.try_from(identifier), arguments[0], identifier_start))
                position += length
            elif identifier == 'var':
                name, length = _collect_variable_identifier(formula, position)
                var_id = _resolve_variable(name, position, variable_id_hint)
                result.append(BmaToken.atomic(Literal.variable(var_id), identifier_start))
                position += length
            else:
                raise TokenizationError(identifier_start, f"`{identifier}` is not a recognized function or variable")
        else:
            raise TokenizationError(position, f"Unexpected `{c}`")

    if ends_with_parenthesis:
        raise TokenizationError(position, "Input ended while expecting `)`")
    if ends_with_comma:
        raise TokenizationError(position, "Input ended while expecting `,`")
    return result, position - start_at


def _is_valid_name_start(c : str) -> bool:
    return c.isalpha() or c == '_'


def _is_valid_in_name(c : str) -> bool:
    # BMA model files routinely use `-` in variable names.
    return c.isalnum() or c == '_' or c == '-'


def _skip_whitespace(formula : str, position : int) -> int:
    while position < len(formula) and formula[position].isspace():
        position += 1
    return position


def _collect_identifier(formula : str, start_at : int) -> str:
    end = start_at
    while end < len(formula) and _is_valid_in_name(formula[end]):
        end += 1
    return formula[start_at:end]


def _collect_number(formula : str, start_at : int) -> str:
    end = start_at
    while end < len(formula) and '0' <= formula[end] <= '9':
        end += 1
    return formula[start_at:end]


def _collect_variable_identifier(formula : str, start_at : int) -> tuple:
    """
    Read the ``( identifier )`` part of a ``var(...)`` reference. Returns the
    identifier and the number of consumed characters.
    """
    position = _skip_whitespace(formula, start_at)
    if position >= len(formula) or formula[position] != '(':
        raise TokenizationError(position, "Expected `var` to be followed by `(`")

    position = _skip_whitespace(formula, position + 1)
    identifier = _collect_identifier(formula, position)
    if identifier == '':
        raise TokenizationError(position, "No identifier found in `var` expression")

    position = _skip_whitespace(formula, position + len(identifier))
    if position >= len(formula) or formula[position] != ')':
        raise TokenizationError(position, "Expected `var` to be closed by `)`")

    return identifier, position - start_at + 1


def _resolve_variable(identifier : str, position : int, variable_id_hint) -> int:
    """
    Turn a ``var(...)`` identifier into a variable ID. Unsigned integers are
    IDs already; anything else is looked up by name in the hint list.
    """
    if _DECIMAL_ID.fullmatch(identifier) and int(identifier) <= _UINT32_MAX:
        return int(identifier)
    matching = sorted({var_id for (var_id, name) in variable_id_hint if name == identifier})
    if len(matching) == 0:
        raise TokenizationError(position, f"`{identifier}` is not a known regulator")
    if len(matching) > 1:
        ids = ', '.join(str(var_id) for var_id in matching)
        raise TokenizationError(position, f"`{identifier}` resolves to multiple regulator IDs: `{{{ids}}}`")
    return matching[0]


def _collect_function_arguments(formula : str, start_at : int, variable_id_hint) -> tuple:
    """
    Read a parenthesized, comma separated argument list. Every argument is
    returned as a ``GROUP`` token positioned at the start of the argument.
    Returns the arguments and the number of consumed characters.
    """
    position = _skip_whitespace(formula, start_at)
    if position >= len(formula) or formula[position] != '(':
        raise TokenizationError(position, "Expected argument list, but opening `(` is missing")

    position = _skip_whitespace(formula, position + 1)
    arguments = []
    while True:
        if position < len(formula) and formula[position] == ')':
            position += 1
            break
        group, length = _tokenize_recursive(formula, position, True, True, variable_id_hint)
        if len(group) == 0:
            raise TokenizationError(position, "Argument is empty")
        arguments.append(BmaToken.group(group, position))
        position += length
        if formula[position - 1] == ')':
            break
        position = _skip_whitespace(formula, position)
        if position < len(formula) and formula[position] == ')':
            # Trailing comma: `min(1, )`.
            raise TokenizationError(position, "Argument is empty")

    return arguments, position - start_at
