"""
Ring presentations, homomorphisms and the presentation simplifier

Mathematical setting:
    A presentation is a ring

        R = k[x_1, ..., x_n] / I          (optionally localized at S)

    given by generators x_i, relation polynomials generating I and a finite
    list of polynomials S that are inverted. Elements are rational
    expressions whose denominators are products of elements of S.

    A ring homomorphism A -> B is determined by the images of A's
    generators in B.

Redlines:
    - Presentations are immutable; localizing returns a new presentation.
    - Coercion never guesses: a value mentioning a symbol outside the
      generators is rejected.
    - Equality of elements is decided by reduction of the numerator of
      the difference modulo a Groebner basis of I. In a localization this
      is a sufficient test for zero, not a decision procedure.

Architecture:
    Layer 1: Presentation  (generators / relations / inverted elements)
    Layer 2: RingElement   (arithmetic, equality, numerators)
    Layer 3: RingHom       (application, composition, relation check)
    Layer 4: simplify_presentation (variable elimination, returns (L, f, g))
    Layer 5: verify_mutual_inverses (generator and sampled round-trip laws)
"""

from __future__ import annotations

import logging
from fractions import Fraction
from typing import Dict, List, Optional, Sequence, Tuple, Union

import sympy as sp

from algebra_backend import (
    BackendError,
    IdealReducer,
    as_expr,
    as_symbol,
    foreign_symbols,
    is_constant,
    make_rng,
    random_fraction,
    split_fraction,
    substitute,
)
from scheme_config import load_config

_logger = logging.getLogger(__name__)


# =============================================================================
# 0) Exceptions
# =============================================================================


class PresentationError(Exception):
    """Base class of the presentation module."""


class CoercionError(PresentationError):
    """A value cannot be read as an element of the presentation."""


class HomomorphismError(PresentationError):
    """Ill-formed homomorphism (image count, composition, relations)."""


class InverseMismatch(PresentationError):
    """Two homomorphisms claimed mutually inverse are not."""


# =============================================================================
# 1) Presentation
# =============================================================================


class Presentation:
    """
    k[x_1..x_n] / I, localized at the products of ``inverted``.

    Args:
        symbols: generator names (str or sympy Symbol), order is significant
        relations: polynomials generating I
        inverted: polynomials whose powers may appear as denominators
        name: label used in repr only
    """

    def __init__(
        self,
        symbols: Sequence[Union[str, sp.Symbol]],
        relations: Sequence = (),
        inverted: Sequence = (),
        *,
        name: Optional[str] = None,
    ):
        try:
            syms = tuple(as_symbol(s) for s in symbols)
        except BackendError as e:
            raise PresentationError(str(e)) from e
        if len(set(syms)) != len(syms):
            raise PresentationError(f"duplicate generator in {syms}")
        self._symbols: Tuple[sp.Symbol, ...] = syms
        self._relations: Tuple[sp.Expr, ...] = tuple(
            r for r in (self._polynomial(v, "relation") for v in relations) if r != 0
        )
        inv: List[sp.Expr] = []
        for v in inverted:
            p = self._polynomial(v, "inverted element")
            if p == 0:
                raise PresentationError("cannot invert 0")
            if is_constant(p) or p in inv:
                continue
            inv.append(p)
        self._inverted: Tuple[sp.Expr, ...] = tuple(inv)
        self._name = name
        self._reducer = IdealReducer(self._relations, self._symbols)

    def _polynomial(self, value, what: str) -> sp.Expr:
        try:
            expr = sp.expand(as_expr(value))
        except BackendError as e:
            raise PresentationError(f"bad {what}: {e}") from e
        extra = foreign_symbols(expr, self._symbols)
        if extra:
            raise PresentationError(f"{what} {expr} uses symbols {sorted(map(str, extra))} outside generators")
        _, den = split_fraction(expr)
        if not is_constant(den):
            raise PresentationError(f"{what} {expr} must be a polynomial")
        return expr

    # -- accessors -----------------------------------------------------------

    @property
    def symbols(self) -> Tuple[sp.Symbol, ...]:
        return self._symbols

    @property
    def relations(self) -> Tuple[sp.Expr, ...]:
        return self._relations

    @property
    def inverted(self) -> Tuple[sp.Expr, ...]:
        return self._inverted

    @property
    def ngens(self) -> int:
        return len(self._symbols)

    def gens(self) -> Tuple["RingElement", ...]:
        return tuple(RingElement(self, s) for s in self._symbols)

    def gen(self, key: Union[int, str]) -> "RingElement":
        if isinstance(key, int):
            if 0 <= key < len(self._symbols):
                return RingElement(self, self._symbols[key])
            raise PresentationError(f"generator index {key} out of range [0, {len(self._symbols)})")
        for s in self._symbols:
            if s.name == key:
                return RingElement(self, s)
        raise PresentationError(f"unknown generator {key!r}")

    def one(self) -> "RingElement":
        return RingElement(self, sp.Integer(1))

    def zero(self) -> "RingElement":
        return RingElement(self, sp.Integer(0))

    # -- coercion ------------------------------------------------------------

    def __call__(self, value) -> "RingElement":
        """
        Read ``value`` as an element of this ring.

        Ring elements of other presentations are accepted by expression when
        their symbols are generators here (coordinate-compatible rings); the
        caller is responsible for the denominators being units.
        """
        if isinstance(value, RingElement):
            if value.parent is self:
                return value
            expr = value.expr
        else:
            try:
                expr = as_expr(value)
            except BackendError as e:
                raise CoercionError(str(e)) from e
        extra = foreign_symbols(expr, self._symbols)
        if extra:
            raise CoercionError(
                f"{expr} is not an element of {self!r}: symbols {sorted(map(str, extra))} are not generators"
            )
        return RingElement(self, expr)

    # -- structure -----------------------------------------------------------

    def localize(self, elements: Sequence, *, name: Optional[str] = None) -> "Presentation":
        """
        Same generators and relations, with the numerators of ``elements``
        inverted in addition.
        """
        extra: List[sp.Expr] = []
        for e in elements:
            num, _ = split_fraction(self(e).expr)
            extra.append(num)
        return Presentation(
            self._symbols,
            self._relations,
            self._inverted + tuple(extra),
            name=name,
        )

    def is_coordinate_compatible(self, other: "Presentation") -> bool:
        return self._symbols == other._symbols and self._relations == other._relations

    def reduce(self, poly: sp.Expr) -> sp.Expr:
        """Normal form of a polynomial modulo the relations."""
        return self._reducer.reduce(poly)

    def is_zero(self, expr: sp.Expr) -> bool:
        num, _ = split_fraction(expr)
        return self._reducer.contains(num)

    def __repr__(self) -> str:
        gens = ", ".join(s.name for s in self._symbols)
        body = f"k[{gens}]"
        if self._relations:
            body += " / (" + ", ".join(str(r) for r in self._relations) + ")"
        if self._inverted:
            body += " [" + ", ".join(f"1/({u})" for u in self._inverted) + "]"
        if self._name:
            return f"{self._name} = {body}"
        return body


# =============================================================================
# 2) Ring elements
# =============================================================================


class RingElement:
    """An element of a Presentation, held as a sympy rational expression."""

    __slots__ = ("parent", "expr")

    def __init__(self, parent: Presentation, expr: sp.Expr):
        self.parent = parent
        self.expr = expr

    def _other(self, other) -> sp.Expr:
        return self.parent(other).expr

    def __add__(self, other) -> "RingElement":
        return RingElement(self.parent, self.expr + self._other(other))

    __radd__ = __add__

    def __sub__(self, other) -> "RingElement":
        return RingElement(self.parent, self.expr - self._other(other))

    def __rsub__(self, other) -> "RingElement":
        return RingElement(self.parent, self._other(other) - self.expr)

    def __mul__(self, other) -> "RingElement":
        return RingElement(self.parent, self.expr * self._other(other))

    __rmul__ = __mul__

    def __neg__(self) -> "RingElement":
        return RingElement(self.parent, -self.expr)

    def __pow__(self, n: int) -> "RingElement":
        if not isinstance(n, int) or n < 0:
            raise PresentationError(f"only non-negative integer powers are supported, got {n!r}")
        return RingElement(self.parent, self.expr ** n)

    def __eq__(self, other) -> bool:
        if isinstance(other, (RingElement, int, Fraction, sp.Basic)):
            return self.parent.is_zero(self.expr - self._other(other))
        return NotImplemented

    def __ne__(self, other) -> bool:
        eq = self.__eq__(other)
        if eq is NotImplemented:
            return eq
        return not eq

    __hash__ = None

    def is_zero(self) -> bool:
        return self.parent.is_zero(self.expr)

    def numerator(self) -> sp.Expr:
        return split_fraction(self.expr)[0]

    def denominator(self) -> sp.Expr:
        return split_fraction(self.expr)[1]

    def lifted_numerator(self) -> sp.Expr:
        """
        Numerator as a polynomial of the underlying free ring, valid in any
        coordinate-compatible presentation.
        """
        return self.numerator()

    def __repr__(self) -> str:
        return str(sp.cancel(self.expr))


# =============================================================================
# 3) Ring homomorphisms
# =============================================================================


class RingHom:
    """
    Ring homomorphism phi: A -> B given by phi(x_i) for the generators of A.

    ``check=True`` verifies that every relation of A maps to zero in B.
    """

    def __init__(self, domain: Presentation, codomain: Presentation, images: Sequence, *, check: bool = False):
        images = tuple(images)
        if len(images) != domain.ngens:
            raise HomomorphismError(
                f"{domain.ngens} generator images expected, got {len(images)}"
            )
        self.domain = domain
        self.codomain = codomain
        self.images: Tuple[RingElement, ...] = tuple(codomain(v) for v in images)
        self._mapping: Dict[sp.Symbol, sp.Expr] = {
            s: img.expr for s, img in zip(domain.symbols, self.images)
        }
        if check:
            self.check_relations()

    def check_relations(self) -> None:
        for r in self.domain.relations:
            if not self.codomain.is_zero(substitute(r, self._mapping)):
                raise HomomorphismError(f"relation {r} of the domain does not map to zero")

    def __call__(self, a) -> RingElement:
        a = self.domain(a)
        value = substitute(a.expr, self._mapping)
        if value.has(sp.zoo, sp.nan):
            raise HomomorphismError(f"{a!r} has a denominator that maps to 0")
        return RingElement(self.codomain, value)

    def compose(self, after: "RingHom") -> "RingHom":
        """
        after o self: with self: A->B and after: B->C, returns A->C.
        """
        if after.domain is not self.codomain:
            raise HomomorphismError("cannot compose: codomain and domain differ")
        return RingHom(self.domain, after.codomain, [after(img) for img in self.images])

    def __repr__(self) -> str:
        pairs = ", ".join(f"{s} -> {img!r}" for s, img in zip(self.domain.symbols, self.images))
        return f"RingHom({pairs})"


def identity_hom(P: Presentation) -> RingHom:
    return RingHom(P, P, P.gens())


# =============================================================================
# 4) Simplifier
# =============================================================================


def _eliminable(relation: sp.Expr, symbols: Sequence[sp.Symbol]) -> Optional[Tuple[sp.Symbol, sp.Expr]]:
    """
    Find x with relation = c*x + rest, c a non-zero constant and rest free
    of x; return (x, -rest/c).
    """
    for x in symbols:
        if x not in relation.free_symbols:
            continue
        poly = sp.Poly(relation, x)
        if poly.degree() != 1:
            continue
        c = poly.coeff_monomial(x)
        if not is_constant(c) or c == 0:
            continue
        rest = sp.expand(relation - c * x)
        return x, sp.expand(-rest / c)
    return None


def simplify_presentation(P: Presentation, *, check: Optional[bool] = None) -> Tuple[Presentation, RingHom, RingHom]:
    """
    Eliminate generators that some relation expresses in terms of the others.

    Returns ``(L, f, g)`` with ``f: P -> L`` and ``g: L -> P`` mutually
    inverse. As scheme morphisms, f is the pullback of Spec L -> Spec P and
    g that of Spec P -> Spec L. The generators of L are fresh symbols
    (surviving names primed), so L and P are never coordinate-compatible.
    """
    if check is None:
        check = load_config().check_homomorphisms

    symbols: List[sp.Symbol] = list(P.symbols)
    relations: List[sp.Expr] = list(P.relations)
    inverted: List[sp.Expr] = list(P.inverted)
    solved: Dict[sp.Symbol, sp.Expr] = {}

    progress = True
    while progress:
        progress = False
        for i, r in enumerate(relations):
            hit = _eliminable(r, symbols)
            if hit is None:
                continue
            x, value = hit
            sub = {x: value}
            solved = {s: sp.expand(substitute(v, sub)) for s, v in solved.items()}
            solved[x] = value
            symbols.remove(x)
            relations = [sp.expand(substitute(q, sub)) for j, q in enumerate(relations) if j != i]
            relations = [q for q in relations if q != 0]
            inverted = [sp.expand(substitute(u, sub)) for u in inverted]
            _logger.debug("eliminated %s = %s", x, value)
            progress = True
            break

    reducer = IdealReducer(relations, symbols)
    for u in inverted:
        if reducer.contains(u):
            raise PresentationError(f"{P!r} inverts an element that the relations make 0; it is the zero ring")
    inverted = [u for u in inverted if not is_constant(u)]
    fresh = {s: sp.Symbol(s.name + "'") for s in symbols}
    L = Presentation(
        [fresh[s] for s in symbols],
        [substitute(r, fresh) for r in relations],
        [substitute(u, fresh) for u in inverted],
    )
    f_images = []
    for s in P.symbols:
        if s in fresh:
            f_images.append(fresh[s])
        else:
            f_images.append(substitute(solved[s], fresh))
    f = RingHom(P, L, f_images, check=check)
    g = RingHom(L, P, symbols, check=check)
    _logger.debug("simplified %d -> %d generators", P.ngens, L.ngens)
    return L, f, g


# =============================================================================
# 5) Round-trip verification
# =============================================================================


def _fixes(phi: RingHom, elements: Sequence[RingElement]) -> Optional[RingElement]:
    """First element not fixed by the endomorphism phi, or None."""
    for a in elements:
        try:
            moved = phi(a) != a
        except HomomorphismError:
            moved = True
        if moved:
            return a
    return None


def verify_mutual_inverses(
    f: RingHom,
    g: RingHom,
    *,
    samples: int = 0,
    seed: Optional[int] = 0,
) -> None:
    """
    Check g o f = id on f's domain and f o g = id on g's domain, first on
    generators, then on ``samples`` random elements per side.

    Raises:
        InverseMismatch: on the first element that is not fixed
    """
    if f.codomain is not g.domain or g.codomain is not f.domain:
        raise HomomorphismError("f and g are not composable in both orders")
    there_and_back = f.compose(g)
    back_and_there = g.compose(f)
    rng = make_rng(seed)
    for phi, P in ((there_and_back, f.domain), (back_and_there, g.domain)):
        elements = list(P.gens())
        for _ in range(samples):
            elements.append(P(random_fraction(P.symbols, P.inverted, rng)))
        bad = _fixes(phi, elements)
        if bad is not None:
            raise InverseMismatch(f"round trip does not fix {bad!r} in {P!r}")
