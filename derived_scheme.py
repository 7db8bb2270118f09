"""
Derived affine schemes and their morphisms

A derived scheme is obtained from a reference patch by repeatedly

  - restricting to the locus where ring elements do not vanish (OpenView),
  - re-presenting the coordinate ring with fewer generators (SimplifiedView).

Every node keeps a strong reference to its direct parent, so the ancestry
is a finite single-parent chain ending at a node without parent (usually
a RootPatch of some Atlas). Identity of schemes is reference identity.

Morphisms of schemes X -> Y are carried by their pullback OO(Y) -> OO(X).
A morphism has a cached-inverse slot; pairs are registered together by
``link_inverses`` and are verified only when configured to (see
``scheme_config``).
"""

from __future__ import annotations

import itertools
import logging
from enum import Enum, auto
from typing import Callable, Dict, Iterable, Iterator, Optional, Tuple

from presentation import Presentation, RingElement, RingHom, identity_hom, simplify_presentation, verify_mutual_inverses
from scheme_config import InverseCheck, load_config

_logger = logging.getLogger(__name__)


# =============================================================================
# 0) Exceptions
# =============================================================================


class DerivedSchemeError(Exception):
    """Base class for derived-scheme bookkeeping errors."""


class UnresolvedAncestry(DerivedSchemeError):
    """
    The ancestry of a scheme ended without meeting any atlas member.
    """

    def __init__(self, scheme: "DerivedScheme", depth: int, details: str = ""):
        self.scheme = scheme
        self.depth = depth
        msg = f"ancestry of {scheme!r} exhausted after {depth} step(s) without reaching an atlas patch"
        if details:
            msg += f": {details}"
        super().__init__(msg)


class MorphismError(DerivedSchemeError):
    """Pullback rings do not match the schemes, or morphisms are not composable."""


class MissingInverse(DerivedSchemeError):
    """Inverse requested from a morphism with an empty inverse slot."""


# =============================================================================
# 1) Scheme morphisms
# =============================================================================


class SchemeMorphism:
    """
    Morphism X -> Y given by its pullback OO(Y) -> OO(X).
    """

    def __init__(self, domain: "DerivedScheme", codomain: "DerivedScheme", pullback: RingHom):
        if pullback.domain is not codomain.coordinate_ring or pullback.codomain is not domain.coordinate_ring:
            raise MorphismError(
                f"pullback must map OO({codomain!r}) to OO({domain!r})"
            )
        self.domain = domain
        self.codomain = codomain
        self.pullback = pullback
        self._inverse: Optional[SchemeMorphism] = None

    @property
    def has_cached_inverse(self) -> bool:
        return self._inverse is not None

    def inverse(self) -> "SchemeMorphism":
        if self._inverse is None:
            raise MissingInverse(f"no inverse registered for {self!r}")
        return self._inverse

    def compose(self, after: "SchemeMorphism") -> "SchemeMorphism":
        """
        after o self: with self: X->Y and after: Y->Z, returns X->Z.
        """
        if after.domain is not self.codomain:
            raise MorphismError(f"cannot compose {self!r} with {after!r}")
        return SchemeMorphism(self.domain, after.codomain, after.pullback.compose(self.pullback))

    def __repr__(self) -> str:
        return f"SchemeMorphism({self.domain!r} -> {self.codomain!r})"


def compose(f: SchemeMorphism, g: SchemeMorphism) -> SchemeMorphism:
    """g o f for f: X->Y, g: Y->Z."""
    return f.compose(g)


def identity_map(X: "DerivedScheme") -> SchemeMorphism:
    f = SchemeMorphism(X, X, identity_hom(X.coordinate_ring))
    f._inverse = f
    return f


def link_inverses(f: SchemeMorphism, g: SchemeMorphism) -> None:
    """
    Register f and g as each other's cached inverse.

    Repeated registration is harmless. With DERIVED_SCHEME_INVERSE_CHECK set
    the pair is verified first (presentation.InverseMismatch on failure).
    """
    if f.domain is not g.codomain or f.codomain is not g.domain:
        raise MorphismError(f"{f!r} and {g!r} are not opposite")
    cfg = load_config()
    if cfg.inverse_check is not InverseCheck.OFF:
        samples = cfg.inverse_samples if cfg.inverse_check is InverseCheck.SAMPLED else 0
        verify_mutual_inverses(f.pullback, g.pullback, samples=samples, seed=cfg.seed)
    f._inverse = g
    g._inverse = f


# =============================================================================
# 2) Derived schemes
# =============================================================================


class SchemeKind(Enum):
    ROOT = auto()
    OPEN = auto()
    SIMPLIFIED = auto()


class DerivedScheme:
    """Common interface of the three scheme kinds."""

    kind: SchemeKind

    def __init__(self, coordinate_ring: Presentation, name: Optional[str] = None):
        self._ring = coordinate_ring
        self.name = name

    @property
    def coordinate_ring(self) -> Presentation:
        return self._ring

    @property
    def parent(self) -> Optional["DerivedScheme"]:
        return None

    @property
    def depth(self) -> int:
        return sum(1 for _ in ancestry(self)) - 1

    def gens(self) -> Tuple[RingElement, ...]:
        return self._ring.gens()

    def __repr__(self) -> str:
        label = self.name or f"0x{id(self):x}"
        return f"{type(self).__name__}<{label}>"


_patch_ids = itertools.count()


class RootPatch(DerivedScheme):
    """A patch with no derivation parent."""

    kind = SchemeKind.ROOT

    def __init__(self, coordinate_ring: Presentation, name: Optional[str] = None):
        super().__init__(coordinate_ring, name)
        self.patch_id = next(_patch_ids)


class OpenView(DerivedScheme):
    """
    The locus of ``ambient`` where the complement equations do not vanish.

    The equations live in the ambient (direct parent's) ring; the coordinate
    ring is that ring localized at their numerators, so both share generators
    and relations.
    """

    kind = SchemeKind.OPEN

    def __init__(self, ambient: DerivedScheme, equations, name: Optional[str] = None):
        R = ambient.coordinate_ring
        if isinstance(equations, (list, tuple)):
            eqs = tuple(R(h) for h in equations)
        else:
            eqs = (R(equations),)
        super().__init__(R.localize(eqs), name)
        self._ambient = ambient
        self._equations = eqs
        self._inclusion: Optional[SchemeMorphism] = None

    @property
    def parent(self) -> DerivedScheme:
        return self._ambient

    @property
    def ambient(self) -> DerivedScheme:
        return self._ambient

    @property
    def complement_equations(self) -> Tuple[RingElement, ...]:
        return self._equations

    @property
    def complement_equation(self) -> RingElement:
        h = self._ambient.coordinate_ring.one()
        for e in self._equations:
            h = h * e
        return h

    def inclusion_morphism(self) -> SchemeMorphism:
        if self._inclusion is None:
            R = self.coordinate_ring
            self._inclusion = SchemeMorphism(
                self, self._ambient, RingHom(self._ambient.coordinate_ring, R, R.gens())
            )
        return self._inclusion


class SimplifiedView(DerivedScheme):
    """
    ``original`` re-presented by ``simplified_ring``.

    Args:
        forward_pullback: OO(original) -> simplified_ring, pullback of
            view -> original
        backward_pullback: simplified_ring -> OO(original), pullback of
            original -> view

    Both scheme morphisms are built here and registered as inverses.
    """

    kind = SchemeKind.SIMPLIFIED

    def __init__(
        self,
        original: DerivedScheme,
        simplified_ring: Presentation,
        forward_pullback: RingHom,
        backward_pullback: RingHom,
        name: Optional[str] = None,
    ):
        super().__init__(simplified_ring, name)
        self._original = original
        self._to_original = SchemeMorphism(self, original, forward_pullback)
        self._to_simplified = SchemeMorphism(original, self, backward_pullback)
        link_inverses(self._to_original, self._to_simplified)

    @property
    def parent(self) -> DerivedScheme:
        return self._original

    @property
    def original(self) -> DerivedScheme:
        return self._original

    @property
    def to_original(self) -> SchemeMorphism:
        return self._to_original

    @property
    def to_simplified(self) -> SchemeMorphism:
        return self._to_simplified

    def identification_maps(self) -> Tuple[SchemeMorphism, SchemeMorphism]:
        """(view -> original, original -> view)"""
        return self._to_original, self._to_simplified


# =============================================================================
# 3) Constructors
# =============================================================================


def restrict(X: DerivedScheme, equations, *, name: Optional[str] = None) -> OpenView:
    """The open subset of X where ``equations`` (element or sequence) do not vanish."""
    return OpenView(X, equations, name=name)


def simplify(X: DerivedScheme, *, name: Optional[str] = None) -> SimplifiedView:
    """
    Re-present X with the generators the simplifier could not eliminate.

    The result is never coordinate-compatible with X; move functions across
    with ``identification_maps``.
    """
    L, f, g = simplify_presentation(X.coordinate_ring)
    Y = SimplifiedView(X, L, f, g, name=name)
    _logger.debug("simplify %r: %d -> %d generators", X, X.coordinate_ring.ngens, L.ngens)
    return Y


# =============================================================================
# 4) Ancestry
# =============================================================================


def ancestry(X: DerivedScheme) -> Iterator[DerivedScheme]:
    """X, its parent, its grandparent, ... up to the node without parent."""
    node: Optional[DerivedScheme] = X
    while node is not None:
        yield node
        node = node.parent


def some_ancestor(P: Callable[[DerivedScheme], bool], X: DerivedScheme) -> bool:
    """
    Whether P holds for X or for some ancestor of X. At a node without
    parent P is evaluated and its value returned. The ancestry must be
    acyclic.
    """
    for node in ancestry(X):
        if P(node):
            return True
    return False


# =============================================================================
# 5) Atlas
# =============================================================================


class Atlas:
    """
    A finite family of patches, membership by reference identity.

    Structurally equal schemes that are different objects are different
    members.
    """

    def __init__(self, patches: Iterable[DerivedScheme], name: Optional[str] = None):
        self._patches: Tuple[DerivedScheme, ...] = tuple(patches)
        self._index: Dict[int, int] = {}
        for i, p in enumerate(self._patches):
            if not isinstance(p, DerivedScheme):
                raise TypeError(f"atlas patches must be DerivedScheme, got {type(p).__name__}")
            self._index.setdefault(id(p), i)
        self.name = name

    @property
    def patches(self) -> Tuple[DerivedScheme, ...]:
        return self._patches

    def index(self, X: DerivedScheme) -> int:
        i = self._index.get(id(X))
        if i is None or self._patches[i] is not X:
            raise KeyError(f"{X!r} is not a patch of this atlas")
        return i

    def __contains__(self, X) -> bool:
        i = self._index.get(id(X))
        return i is not None and self._patches[i] is X

    def __iter__(self) -> Iterator[DerivedScheme]:
        return iter(self._patches)

    def __len__(self) -> int:
        return len(self._patches)

    def __getitem__(self, i: int) -> DerivedScheme:
        return self._patches[i]

    def __repr__(self) -> str:
        label = f"{self.name}: " if self.name else ""
        return f"Atlas({label}{', '.join(repr(p) for p in self._patches)})"
