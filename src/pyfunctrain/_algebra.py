"""Function classes and the promotion table shared by binary operators."""

from __future__ import annotations

from enum import IntEnum

import numpy as np


class FunctionClass(IntEnum):
    """Backend tag of a :class:`~pyfunctrain.generic.GenericFunction`."""

    POLYNOMIAL = 0
    PIECEWISE = 1
    LINELM = 2
    RATIONAL = 3
    KERNEL = 4


IMPLEMENTED = (FunctionClass.POLYNOMIAL, FunctionClass.PIECEWISE,
               FunctionClass.LINELM)

_P = FunctionClass.POLYNOMIAL
_W = FunctionClass.PIECEWISE
_L = FunctionClass.LINELM

# (left, right) -> result class. Pairs absent from the table are forbidden.
PROMOTION = {
    (_P, _P): _P,
    (_W, _W): _W,
    (_L, _L): _L,
    (_P, _W): _W,
    (_W, _P): _W,
}


def _is_scalar(value) -> bool:
    """Return True if *value* is a numeric scalar (int, float, or numpy scalar)."""
    return isinstance(value, (int, float, np.integer, np.floating))


def check_implemented(fc) -> FunctionClass:
    """Coerce *fc* to :class:`FunctionClass` and reject stub classes."""
    fc = FunctionClass(fc)
    if fc not in IMPLEMENTED:
        raise NotImplementedError(f"Function class {fc.name} is not implemented")
    return fc


def promote(left, right) -> FunctionClass:
    """Result class of a binary operation on classes *left* and *right*.

    Raises
    ------
    NotImplementedError
        If either class is a stub (RATIONAL, KERNEL).
    ValueError
        If the pair may not be combined, e.g. LINELM with anything else.
    """
    left = check_implemented(left)
    right = check_implemented(right)
    try:
        return PROMOTION[(left, right)]
    except KeyError:
        raise ValueError(
            f"Cannot combine {left.name} with {right.name}; "
            f"LINELM functions only combine with LINELM"
        ) from None
