#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Parser of tokenized BMA update function formulas.

Operator precedence is resolved one level at a time, splitting the token
list at every operator of the lowest remaining precedence level:

    1. ``+`` and ``-``
    2. ``*`` and ``/``
    3. literals, function calls and parenthesized groups

The operands are folded from the left, so ``1 - 2 - 3`` is
``((1 - 2) - 3)``. There is no unary minus: ``-1`` is a parse error, write
``0 - 1`` instead.

Operator chains of any length are parsed iteratively. Nesting of
parentheses and function calls is parsed recursively and is therefore bounded
by the interpreter recursion limit (several hundred levels).

@author: bmaforge developers
"""

from bmaforge.errors import ParseError
from bmaforge.expression import ArithOp, UpdateFunction
from bmaforge.tokenizer import TokenKind, tokenize_bma_formula

__all__ = [
    "parse_bma_tokens",
    "parse_bma_formula",
]

_ADDITIVE = (ArithOp.PLUS, ArithOp.MINUS)
_MULTIPLICATIVE = (ArithOp.MULT, ArithOp.DIV)


def parse_bma_formula(formula : str, variable_id_hint = ()) -> UpdateFunction:
    """
    Tokenize and parse a BMA formula.

    **Parameters:**

        - formula (str): The formula string.
        - variable_id_hint (list[tuple[int, str]], optional): Variable IDs
          with their names, used to resolve ``var(name)`` references.

    **Returns:**

        - UpdateFunction: The parsed expression tree.

    **Raises:**

        - TokenizationError: If the formula cannot be tokenized.
        - ParseError: If the tokens do not form a valid expression.
    """
    tokens = tokenize_bma_formula(formula, variable_id_hint)
    return parse_bma_tokens(tokens)


def parse_bma_tokens(tokens : list) -> UpdateFunction:
    """
    Build an expression tree from a list of tokens.

    **Raises:**

        - ParseError: ``Expression is empty`` for an empty list, or a
          structural error positioned at the offending token.
    """
    if len(tokens) == 0:
        raise ParseError(0, "Expression is empty")
    return _parse_additive(tokens)


def _operator_positions(tokens : list, operators : tuple) -> list:
    return [index for (index, token) in enumerate(tokens)
            if token.kind == TokenKind.BINARY and token.value in operators]


def _fold_left(tokens : list, operators : tuple, parse_operand) -> UpdateFunction:
    """
    Parse ``operand (op operand)*`` for one precedence level into a
    left-associative chain, without recursing once per operator.
    """
    positions = _operator_positions(tokens, operators)
    if len(positions) == 0:
        return parse_operand(tokens)

    first = positions[0]
    if first == 0:
        raise ParseError(tokens[first].position, f"Found nothing at the left-hand-side of operator `{tokens[first]}`")
    result = parse_operand(tokens[:first])
    for (k, split_at) in enumerate(positions):
        operator = tokens[split_at]
        end = positions[k + 1] if k + 1 < len(positions) else len(tokens)
        operand = tokens[split_at + 1:end]
        if len(operand) == 0:
            raise ParseError(operator.position, f"Found nothing at the right-hand-side of operator `{operator}`")
        result = UpdateFunction.mk_arithmetic(operator.value, result, parse_operand(operand))
    return result


def _parse_additive(tokens : list) -> UpdateFunction:
    return _fold_left(tokens, _ADDITIVE, _parse_multiplicative)


def _parse_multiplicative(tokens : list) -> UpdateFunction:
    return _fold_left(tokens, _MULTIPLICATIVE, _parse_atom)


def _parse_atom(tokens : list) -> UpdateFunction:
    assert len(tokens) > 0, "empty operands are reported by the operator levels"
    if len(tokens) > 1:
        joined = ' '.join(str(token) for token in tokens)
        raise ParseError(tokens[1].position, f"Unexpected: `{joined}`. Expecting atomic proposition, function call, or parenthesis group")

    token = tokens[0]
    assert token.kind != TokenKind.BINARY, "binary operators are resolved by the operator levels"
    if token.kind == TokenKind.ATOMIC:
        if token.value.is_variable:
            return UpdateFunction.mk_variable(token.value.value)
        return UpdateFunction.mk_constant(token.value.value)
    elif token.kind == TokenKind.UNARY:
        argument = token.tokens[0]
        assert argument.kind == TokenKind.GROUP, "function arguments are token groups"
        return UpdateFunction.mk_unary(token.value, parse_bma_tokens(argument.tokens))
    elif token.kind == TokenKind.AGGREGATE:
        arguments = []
        for argument in token.tokens:
            assert argument.kind == TokenKind.GROUP, "function arguments are token groups"
            arguments.append(parse_bma_tokens(argument.tokens))
        return UpdateFunction.mk_aggregation(token.value, arguments)
    return parse_bma_tokens(token.tokens)
