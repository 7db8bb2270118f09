"""Lightweight algebra backend for polynomial presentations.

The goal of this module is to expose a minimal, deterministic API over the
subset of ``sympy`` used by ``presentation.py``: coercion of user values to
expressions, a canonical numerator/denominator split of rational
expressions, Groebner reduction modulo an ideal, and seeded random sample
polynomials (``numpy`` generator) for verification of ring maps.

Nothing here knows about schemes; callers pass symbols and expressions.
"""

from __future__ import annotations

from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as _np
import sympy as sp


class BackendError(Exception):
    """Raised when a value cannot be turned into a polynomial expression."""


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


def as_symbol(name) -> sp.Symbol:
    if isinstance(name, sp.Symbol):
        return name
    if isinstance(name, str) and name.strip():
        return sp.Symbol(name.strip())
    raise BackendError(f"generator name must be a non-empty str or Symbol, got {name!r}")


def as_expr(value) -> sp.Expr:
    """
    Coerce ``value`` to a sympy expression.

    Accepts sympy expressions, ints, ``Fraction`` and strings. Floats are
    refused: presentations are exact.
    """
    if isinstance(value, sp.Basic):
        return value
    if isinstance(value, bool):
        raise BackendError("bool is not a ring value")
    if isinstance(value, (int, _np.integer)):
        return sp.Integer(int(value))
    if isinstance(value, Fraction):
        return sp.Rational(value.numerator, value.denominator)
    if isinstance(value, (float, _np.floating)):
        raise BackendError(f"refusing inexact value {value!r}")
    if isinstance(value, str):
        try:
            return sp.sympify(value)
        except (sp.SympifyError, SyntaxError, TypeError) as e:
            raise BackendError(f"cannot parse {value!r}: {e}") from e
    raise BackendError(f"cannot coerce {type(value).__name__} to an expression")


def split_fraction(expr: sp.Expr) -> Tuple[sp.Expr, sp.Expr]:
    """
    Return ``(numerator, denominator)`` of ``expr`` with common factors
    cancelled; both are expanded polynomials.
    """
    num, den = sp.fraction(sp.together(sp.cancel(sp.together(expr))))
    return sp.expand(num), sp.expand(den)


def is_constant(expr: sp.Expr) -> bool:
    return not expr.free_symbols


def foreign_symbols(expr: sp.Expr, symbols: Iterable[sp.Symbol]) -> set:
    return set(expr.free_symbols) - set(symbols)


def substitute(expr: sp.Expr, mapping: Dict[sp.Symbol, sp.Expr]) -> sp.Expr:
    """Simultaneous substitution of symbols."""
    return expr.xreplace(mapping)


# ---------------------------------------------------------------------------
# Ideals
# ---------------------------------------------------------------------------


class IdealReducer:
    """
    Normal forms modulo the ideal generated by ``relations``.

    The Groebner basis is computed on first use (grevlex) and reused.
    """

    def __init__(self, relations: Sequence[sp.Expr], symbols: Sequence[sp.Symbol]):
        self._relations = tuple(relations)
        self._symbols = tuple(symbols)
        self._basis = None

    def _groebner(self):
        if self._basis is None:
            self._basis = sp.groebner(list(self._relations), *self._symbols, order="grevlex", domain=sp.QQ)
        return self._basis

    def reduce(self, poly: sp.Expr) -> sp.Expr:
        poly = sp.expand(poly)
        if not self._relations or not self._symbols:
            return poly
        if poly == 0:
            return poly
        _, remainder = self._groebner().reduce(poly)
        return sp.expand(remainder)

    def contains(self, poly: sp.Expr) -> bool:
        return self.reduce(poly) == 0


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------


def make_rng(seed: Optional[int]) -> _np.random.Generator:
    return _np.random.default_rng(seed)


def random_polynomial(
    symbols: Sequence[sp.Symbol],
    rng: _np.random.Generator,
    *,
    degree: int = 2,
    terms: int = 3,
    coefficient_bound: int = 5,
) -> sp.Expr:
    """
    Random polynomial with ``terms`` monomials, exponent at most ``degree``
    in each variable, and integer coefficients in
    ``[-coefficient_bound, coefficient_bound]``.
    """
    if degree < 0 or terms < 1 or coefficient_bound < 1:
        raise ValueError("degree >= 0, terms >= 1 and coefficient_bound >= 1 required")
    n = len(symbols)
    out = sp.Integer(0)
    for _ in range(terms):
        coeff = int(rng.integers(-coefficient_bound, coefficient_bound + 1))
        if coeff == 0:
            coeff = 1
        mono = sp.Integer(coeff)
        if n:
            exps = rng.integers(0, degree + 1, size=n)
            for s, e in zip(symbols, exps):
                mono *= s ** int(e)
        out += mono
    return sp.expand(out)


def random_fraction(
    symbols: Sequence[sp.Symbol],
    denominators: Sequence[sp.Expr],
    rng: _np.random.Generator,
) -> sp.Expr:
    """
    Random element of a localization: a random polynomial divided by a
    random product of the allowed ``denominators`` (possibly empty).
    """
    num = random_polynomial(symbols, rng)
    den = sp.Integer(1)
    chosen: List[sp.Expr] = []
    for d in denominators:
        if int(rng.integers(0, 2)):
            chosen.append(d)
    for d in chosen:
        den *= d
    return num / den
