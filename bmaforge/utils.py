#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Small numeric and string helpers shared by the bmaforge modules.

@author: bmaforge developers
"""


##Imports
from __future__ import annotations
import math
import re
from fractions import Fraction

import numpy as np

from typing import Union
from typing import Optional

__all__ = [
    "get_left_side_of_truth_table",
    "round_half_away_from_zero",
    "take_if_not_blank",
    "sanitize_name",
]

_NAME_FORBIDDEN_CHARACTERS = re.compile(r"[^0-9a-zA-Z_]")


left_side_of_truth_tables = {}

def get_left_side_of_truth_table(N : int) -> np.ndarray:
    """
    Return all 2^N Boolean input combinations as a (2^N, N) array.

    Row ``i`` holds the binary representation of ``i``, so the last column
    varies fastest (00, 01, 10, 11). This is the row order of every Boolean
    function table built by bmaforge. Results are cached per ``N``.
    """
    if N in left_side_of_truth_tables:
        left_side_of_truth_table = left_side_of_truth_tables[N]
    else:
        vals = np.arange(2**N, dtype=np.uint64)[:, None]              # shape (2^n, 1)
        masks = (1 << np.arange(N-1, -1, -1, dtype=np.uint64))[None]  # shape (1, n)
        left_side_of_truth_table = ((vals & masks) != 0).astype(np.uint8)
        left_side_of_truth_tables[N] = left_side_of_truth_table
    return left_side_of_truth_table


def round_half_away_from_zero(value : Union[Fraction, int]) -> int:
    """
    Round a rational number to the nearest integer, resolving ties away from
    zero (2.5 -> 3, -2.5 -> -3).

    This is the convention used by BMA. Python's built-in ``round`` performs
    banker's rounding and must not be used for output levels.

    **Parameters:**

        - value (Fraction | int | Decimal): Exact value to round.

    **Returns:**

        - int: The rounded value.
    """
    value = Fraction(value)
    magnitude = math.floor(abs(value) + Fraction(1, 2))
    return magnitude if value >= 0 else -magnitude


def take_if_not_blank(value : Optional[str]) -> Optional[str]:
    """
    Return ``value`` unless it is ``None`` or consists only of whitespace.
    """
    if value is None or value.strip() == '':
        return None
    return value


def sanitize_name(name : Optional[str]) -> str:
    """
    Remove every character that is not alphanumeric or underscore.
    """
    if name is None:
        return ''
    return _NAME_FORBIDDEN_CHARACTERS.sub('', name)
