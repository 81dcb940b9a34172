#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exception types raised by bmaforge.

Parsing failures carry the zero-based character position into the original
formula string, so that callers can render a precise diagnostic.
"""

__all__ = [
    "ParserError",
    "TokenizationError",
    "ParseError",
    "InvalidUpdateFunction",
    "EvaluationError",
    "ModelConversionError",
]


class ParserError(ValueError):
    """
    Internal error of the tokenizer/parser. Unlike
    :class:`InvalidUpdateFunction`, it does not know the original expression.

    **Members:**

        - message (str): Human readable reason.
        - position (int): Character offset into the parsed string.
    """

    def __init__(self, position : int, message : str):
        self.position = position
        self.message = message
        super().__init__(f"Invalid expression: {message} at position `{position}`")

    def __eq__(self, other):
        return (type(self) is type(other)
                and self.position == other.position and self.message == other.message)

    def __hash__(self):
        return hash((type(self), self.position, self.message))


class TokenizationError(ParserError):
    """Malformed character sequence in a BMA formula."""


class ParseError(ParserError):
    """Well-tokenized, but structurally invalid BMA formula."""


class InvalidUpdateFunction(ValueError):
    """
    Raised when an update function expression is invalid and cannot be parsed.

    **Members:**

        - expression (str): The offending expression.
        - position (int): Character offset of the problem.
        - message (str): Human readable reason.
    """

    def __init__(self, expression : str, position : int, message : str):
        self.expression = expression
        self.position = position
        self.message = message
        super().__init__(f"Invalid expression `{expression}`: {message} at position `{position}`")

    @classmethod
    def from_parser_error(cls, error : ParserError, expression : str) -> "InvalidUpdateFunction":
        return cls(expression, error.position, error.message)

    def __eq__(self, other):
        return (isinstance(other, InvalidUpdateFunction) and self.expression == other.expression
                and self.position == other.position and self.message == other.message)

    def __hash__(self):
        return hash((self.expression, self.position, self.message))


class EvaluationError(ValueError):
    """
    Raised while evaluating an update function: missing input values,
    division by zero, empty aggregation, or a variable without a function.
    """


class ModelConversionError(ValueError):
    """
    Raised when a model cannot be bridged to (or from) a Boolean network:
    non-Boolean ranges, parameters in Boolean formulas, contradictory constant
    variables, duplicate variable IDs, or dangling relationships.
    """
