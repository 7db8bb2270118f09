#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Chart resolution and flattening of derived schemes

  1. find_chart             - locate the atlas patch a scheme derives from;
                              composite morphism + complement equations
  2. flatten_open_subscheme - rebuild a scheme as a one-level open subset of
                              its atlas patch, with cached inverse isomorphisms

Transport of functions along the ancestry:
  - OpenView -> ambient: same generators and relations, so an equation moves
    by taking its numerator and reading it in the ambient ring.
  - SimplifiedView -> original: the presentations are not coordinate
    compatible; equations move through the pullback of the identification
    (change of basis), never by numerators.

Redlines:
  - No partial results: an ancestry that misses the atlas raises
    UnresolvedAncestry.
  - Loops, not recursion: chain length is not bounded by the interpreter stack.
"""

from __future__ import annotations

import logging
import sys
from typing import Iterable, List, NamedTuple, Sequence, Union

from derived_scheme import (
    Atlas,
    DerivedScheme,
    OpenView,
    RootPatch,
    SchemeMorphism,
    SimplifiedView,
    UnresolvedAncestry,
    ancestry,
    compose,
    identity_map,
    link_inverses,
    restrict,
    simplify,
    some_ancestor,
)
from presentation import Presentation, RingElement, RingHom
from scheme_config import load_config

_logger = logging.getLogger(__name__)


class ChartResolution(NamedTuple):
    """
    morphism: U -> V with V the atlas patch
    complement_equations: elements of OO(V); U is V minus their zeros
    """

    morphism: SchemeMorphism
    complement_equations: List[RingElement]

    @property
    def patch(self) -> DerivedScheme:
        return self.morphism.codomain


def _as_atlas(atlas: Union[Atlas, Iterable[DerivedScheme]]) -> Atlas:
    if isinstance(atlas, Atlas):
        return atlas
    return Atlas(atlas)


# =============================================================================
# 1) ChartResolver
# =============================================================================


def find_chart(
    U: DerivedScheme,
    atlas: Union[Atlas, Iterable[DerivedScheme]],
    complement_equations: Sequence = (),
) -> ChartResolution:
    """
    Crawl up the ancestry of U until a patch V of ``atlas`` is met.

    Returns (f, d): f is the morphism U -> V, d a list of elements of OO(V)
    such that f identifies U with the complement of their zeros. The seed
    ``complement_equations`` are elements of OO(U) and are carried along.

    Raises:
        UnresolvedAncestry: the chain ends outside the atlas
    """
    atlas = _as_atlas(atlas)
    current = U
    equations = [U.coordinate_ring(e) for e in complement_equations]
    morphism = None
    steps = 0
    while current not in atlas:
        if isinstance(current, OpenView):
            W = current.ambient
            R = W.coordinate_ring
            equations = [R(e.lifted_numerator()) for e in equations]
            equations.append(R(current.complement_equation.lifted_numerator()))
            step = current.inclusion_morphism()
        elif isinstance(current, SimplifiedView):
            W = current.original
            f, g = current.identification_maps()
            equations = [g.pullback(e) for e in equations]
            step = f
        elif current.parent is None:
            raise UnresolvedAncestry(U, steps, f"root {current!r} is not in the atlas")
        else:
            raise TypeError(f"unhandled scheme kind {type(current).__name__}")
        morphism = step if morphism is None else compose(morphism, step)
        _logger.debug("find_chart: %r -> %r (%d equations)", current, W, len(equations))
        current = W
        steps += 1
    if morphism is None:
        morphism = identity_map(U)
    _logger.debug("find_chart: %r resolved to %r after %d step(s)", U, current, steps)
    return ChartResolution(morphism, equations)


# =============================================================================
# 2) ViewFlattener
# =============================================================================


def _isomorphism(X: DerivedScheme, Y: DerivedScheme, forward_images, backward_images) -> SchemeMorphism:
    """
    X -> Y with pullback OO(Y) -> OO(X) sending Y's generators to
    ``forward_images``; the inverse sends X's generators to
    ``backward_images``. Both directions are linked before returning.
    """
    check = load_config().check_homomorphisms
    f = SchemeMorphism(X, Y, RingHom(Y.coordinate_ring, X.coordinate_ring, forward_images, check=check))
    g = SchemeMorphism(Y, X, RingHom(X.coordinate_ring, Y.coordinate_ring, backward_images, check=check))
    link_inverses(f, g)
    return f


def _trivial_open_identification(U: DerivedScheme) -> SchemeMorphism:
    """U -> U restricted by no equation."""
    UU = OpenView(U, [])
    return _isomorphism(U, UU, U.coordinate_ring.gens(), UU.coordinate_ring.gens())


def flatten_open_subscheme(
    U: DerivedScheme,
    atlas: Union[Atlas, Iterable[DerivedScheme]],
) -> SchemeMorphism:
    """
    Follow U up its ancestry to a patch W of ``atlas`` and recreate U as an
    OpenView UU of W (a single level). Returns the isomorphism U -> UU with
    its inverse cached.

    Raises:
        UnresolvedAncestry: no ancestor of U is in the atlas
    """
    atlas = _as_atlas(atlas)
    if not some_ancestor(lambda W: W in atlas, U):
        raise UnresolvedAncestry(U, U.depth, "no ancestor is an atlas patch")

    iso = _trivial_open_identification(U)
    current = U
    steps = 0
    while current not in atlas:
        UV = iso.codomain
        if isinstance(current, OpenView):
            W = current.ambient
            R = W.coordinate_ring
            equations = [R(e.lifted_numerator()) for e in UV.complement_equations]
            equations.append(R(current.complement_equation.lifted_numerator()))
            WV = OpenView(W, equations)
            ident = _isomorphism(UV, WV, UV.coordinate_ring.gens(), WV.coordinate_ring.gens())
        elif isinstance(current, SimplifiedView):
            W = current.original
            f, g = current.identification_maps()
            WV = OpenView(W, [g.pullback(e) for e in UV.complement_equations])
            ident = _isomorphism(
                UV,
                WV,
                [f.pullback(w) for w in W.coordinate_ring.gens()],
                [g.pullback(v) for v in current.coordinate_ring.gens()],
            )
        elif current.parent is None:
            raise UnresolvedAncestry(U, steps, f"root {current!r} is not in the atlas")
        else:
            raise TypeError(f"unhandled scheme kind {type(current).__name__}")
        new_iso = compose(iso, ident)
        new_iso_inv = compose(ident.inverse(), iso.inverse())
        link_inverses(new_iso, new_iso_inv)
        _logger.debug("flatten: %r -> %r", current, W)
        iso = new_iso
        current = W
        steps += 1
    _logger.debug("flatten: %r is an open subset of %r after %d step(s)", U, current, steps)
    return iso


# ===========================================================
# Smoke: strict main
# ===========================================================


def _configure_smoke_logging() -> None:
    """Install a default handler only when the host has none."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="[%(levelname)s] %(name)s: %(message)s",
        )
    root.setLevel(logging.INFO)


def _smoke() -> None:
    P = Presentation(["x", "y", "z"], ["z - x**2"], name="P")
    X = RootPatch(P, name="X")
    atlas = Atlas([X], name="C")
    x, y, z = X.gens()

    U1 = restrict(X, x, name="U1")
    S = simplify(U1, name="S")
    _, y1 = S.gens()
    U2 = restrict(S, y1, name="U2")
    _logger.info("chain: %s", " <- ".join(repr(n) for n in reversed(list(ancestry(U2)))))

    f, eqs = find_chart(U2, atlas)
    if f.codomain is not X or f.domain is not U2 or len(eqs) != 2:
        raise RuntimeError(f"find_chart smoke failed: {f!r}, {eqs!r}")
    _logger.info("[find_chart] patch=%r equations=%s", f.codomain, eqs)

    iso = flatten_open_subscheme(U2, atlas)
    flat = iso.codomain
    if flat.ambient is not X:
        raise RuntimeError(f"flatten smoke failed: {flat!r} is not over {X!r}")
    roundtrip = compose(iso, iso.inverse())
    for v in U2.gens():
        if roundtrip.pullback(v) != v:
            raise RuntimeError(f"flatten smoke failed: round trip moves {v!r}")
    _logger.info("[flatten] open subset of %r cut by %s", X, list(flat.complement_equations))


if __name__ == "__main__":
    _configure_smoke_logging()
    _logger.info("chart_resolution smoke: START")
    try:
        _smoke()
    except Exception:
        _logger.exception("chart_resolution smoke: FAIL")
        sys.exit(1)
    _logger.info("chart_resolution smoke: PASS")
