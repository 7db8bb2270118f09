import pytest
import sympy as sp

from derived_scheme import Atlas, RootPatch, restrict, simplify
from presentation import Presentation
from scheme_config import ENV_CHECK_HOMS, ENV_INVERSE_CHECK, ENV_INVERSE_SAMPLES, ENV_SEED


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (ENV_INVERSE_CHECK, ENV_INVERSE_SAMPLES, ENV_SEED, ENV_CHECK_HOMS):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def parabola():
    """k[x, y, z] / (z - x^2) as a root patch with its one-patch atlas."""
    X = RootPatch(Presentation(["x", "y", "z"], ["z - x**2"]), name="X")
    return X, Atlas([X], name="C")


@pytest.fixture
def mixed_chain(parabola):
    """X <- Open(x) <- Simplified <- Open(y')."""
    X, atlas = parabola
    x, y, z = X.gens()
    U1 = restrict(X, x, name="U1")
    S = simplify(U1, name="S")
    _, y1 = S.gens()
    U2 = restrict(S, y1, name="U2")
    return X, atlas, U1, S, U2


def exprs(elements):
    return {sp.expand(e.expr) for e in elements}
