import pytest
import sympy as sp

from derived_scheme import (
    Atlas,
    MissingInverse,
    MorphismError,
    OpenView,
    RootPatch,
    SchemeKind,
    SchemeMorphism,
    SimplifiedView,
    ancestry,
    compose,
    identity_map,
    link_inverses,
    restrict,
    simplify,
    some_ancestor,
)
from presentation import InverseMismatch, Presentation, RingHom
from scheme_config import ENV_CHECK_HOMS, ENV_INVERSE_CHECK, ENV_INVERSE_SAMPLES, InverseCheck, load_config


def test_restrict_builds_open_view(parabola):
    X, _ = parabola
    x, y, z = X.gens()
    U = restrict(X, x * y)
    assert isinstance(U, OpenView)
    assert U.kind is SchemeKind.OPEN
    assert U.ambient is X and U.parent is X
    assert U.coordinate_ring.is_coordinate_compatible(X.coordinate_ring)
    assert U.complement_equation == x * y
    assert U.complement_equation.parent is X.coordinate_ring


def test_open_view_with_several_equations(parabola):
    X, _ = parabola
    x, y, z = X.gens()
    U = restrict(X, [x, y + 1])
    assert len(U.complement_equations) == 2
    assert U.complement_equation == x * y + x
    assert sp.Symbol("x") in U.coordinate_ring.inverted


def test_inclusion_morphism_is_cached(parabola):
    X, _ = parabola
    x, y, z = X.gens()
    U = restrict(X, x)
    inc = U.inclusion_morphism()
    assert inc is U.inclusion_morphism()
    assert inc.domain is U and inc.codomain is X
    assert inc.pullback(z) == U.coordinate_ring("x**2")


def test_simplify_builds_linked_identification(parabola):
    X, _ = parabola
    S = simplify(X)
    assert isinstance(S, SimplifiedView)
    assert S.original is X
    f, g = S.identification_maps()
    assert f is S.to_original and g is S.to_simplified
    assert f.domain is S and f.codomain is X
    assert f.inverse() is g and g.inverse() is f
    assert S.coordinate_ring.ngens == 2
    for v in S.gens():
        assert compose(f, g).pullback(v) == v


def test_views_are_distinct_by_reference(parabola):
    X, _ = parabola
    x = X.gens()[0]
    assert restrict(X, x) is not restrict(X, x)
    Y = RootPatch(X.coordinate_ring)
    atlas = Atlas([X])
    assert X in atlas
    assert Y not in atlas
    assert Y.patch_id != X.patch_id
    with pytest.raises(KeyError):
        atlas.index(Y)


def test_some_ancestor_is_reflexive(mixed_chain):
    X, atlas, U1, S, U2 = mixed_chain
    for node in (X, U1, S, U2):
        assert some_ancestor(lambda n: n is node, node)
    assert some_ancestor(lambda n: n is X, U2)
    assert not some_ancestor(lambda n: n is U2, U1)


def test_some_ancestor_at_root_returns_predicate(parabola):
    X, _ = parabola
    assert not some_ancestor(lambda n: False, X)
    assert some_ancestor(lambda n: n.parent is None, X)


def test_ancestry_and_depth(mixed_chain):
    X, atlas, U1, S, U2 = mixed_chain
    assert list(ancestry(U2)) == [U2, S, U1, X]
    assert U2.depth == 3
    assert X.depth == 0


def test_long_chain_does_not_recurse(parabola):
    X, _ = parabola
    x = X.gens()[0]
    node = X
    for _ in range(1100):
        node = restrict(node, node.coordinate_ring(x.expr))
    assert node.depth == 1100
    assert some_ancestor(lambda n: n is X, node)


def test_morphism_rings_are_checked(parabola):
    X, _ = parabola
    U = restrict(X, X.gens()[0])
    with pytest.raises(MorphismError):
        SchemeMorphism(U, X, RingHom(X.coordinate_ring, X.coordinate_ring, X.gens()))
    with pytest.raises(MorphismError):
        compose(U.inclusion_morphism(), U.inclusion_morphism())


def test_inverse_slot(parabola):
    X, _ = parabola
    U = restrict(X, X.gens()[0])
    inc = U.inclusion_morphism()
    assert not inc.has_cached_inverse
    with pytest.raises(MissingInverse):
        inc.inverse()
    ident = identity_map(X)
    assert ident.inverse() is ident


def test_link_inverses_trusts_by_default():
    P = Presentation(["x"])
    X, Y = RootPatch(P), RootPatch(Presentation(["t"]))
    f = SchemeMorphism(X, Y, RingHom(Y.coordinate_ring, X.coordinate_ring, ["x"]))
    g = SchemeMorphism(Y, X, RingHom(X.coordinate_ring, Y.coordinate_ring, ["2*t"]))
    link_inverses(f, g)
    assert f.inverse() is g


def test_link_inverses_verifies_when_configured(monkeypatch):
    monkeypatch.setenv(ENV_INVERSE_CHECK, "generators")
    X, Y = RootPatch(Presentation(["x"])), RootPatch(Presentation(["t"]))
    f = SchemeMorphism(X, Y, RingHom(Y.coordinate_ring, X.coordinate_ring, ["x"]))
    g = SchemeMorphism(Y, X, RingHom(X.coordinate_ring, Y.coordinate_ring, ["2*t"]))
    with pytest.raises(InverseMismatch):
        link_inverses(f, g)
    assert not f.has_cached_inverse


def test_simplify_under_sampled_verification(monkeypatch, parabola):
    monkeypatch.setenv(ENV_INVERSE_CHECK, "SAMPLED")
    monkeypatch.setenv(ENV_INVERSE_SAMPLES, "3")
    monkeypatch.setenv(ENV_CHECK_HOMS, "on")
    X, _ = parabola
    S = simplify(restrict(X, X.gens()[0]))
    assert S.to_original.inverse() is S.to_simplified


def test_config_parsing(monkeypatch):
    cfg = load_config()
    assert cfg.inverse_check is InverseCheck.OFF
    assert cfg.inverse_samples == 4 and cfg.seed == 0
    assert not cfg.check_homomorphisms
    monkeypatch.setenv(ENV_INVERSE_CHECK, "sometimes")
    with pytest.raises(ValueError):
        load_config()
    monkeypatch.setenv(ENV_INVERSE_CHECK, "OFF")
    monkeypatch.setenv(ENV_INVERSE_SAMPLES, "0")
    with pytest.raises(ValueError):
        load_config()
    monkeypatch.setenv(ENV_INVERSE_SAMPLES, "ten")
    with pytest.raises(ValueError):
        load_config()
