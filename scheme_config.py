"""
Environment configuration for derived-scheme bookkeeping.

Redlines:
  - No silent downgrade: an unparsable value raises (deployment/config error).
  - Read on every call; nothing is cached at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

ENV_INVERSE_CHECK = "DERIVED_SCHEME_INVERSE_CHECK"
ENV_INVERSE_SAMPLES = "DERIVED_SCHEME_INVERSE_SAMPLES"
ENV_SEED = "DERIVED_SCHEME_SEED"
ENV_CHECK_HOMS = "DERIVED_SCHEME_CHECK_HOMS"


class InverseCheck(Enum):
    OFF = "OFF"
    GENERATORS = "GENERATORS"
    SAMPLED = "SAMPLED"


def _env_strict_enum(name: str, *, allowed: Tuple[str, ...], default: str) -> str:
    """
    Read an env var as an enum-like string with strict validation.
    """
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return str(default)
    val = str(raw).strip().upper()
    if val not in allowed:
        raise ValueError(f"{name} must be one of {list(allowed)}, got {raw!r}")
    return val


def _env_int(name: str, *, default: int, minimum: Optional[int] = None) -> int:
    """
    Read an env var as int (base-10), strict.
    """
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return int(default)
    try:
        val = int(str(raw).strip(), 10)
    except Exception as e:
        raise ValueError(f"{name} must be an integer (base-10), got {raw!r}") from e
    if minimum is not None and val < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {val}")
    return val


@dataclass(frozen=True)
class SchemeConfig:
    """
    inverse_check: verification run when two morphisms are registered as
        each other's inverse (OFF leaves the cached slot a trusted hint)
    inverse_samples: random elements per side under SAMPLED
    seed: numpy generator seed for sampling
    check_homomorphisms: verify relations when simplify and the flattener
        build ring maps
    """

    inverse_check: InverseCheck = InverseCheck.OFF
    inverse_samples: int = 4
    seed: int = 0
    check_homomorphisms: bool = False


def load_config() -> SchemeConfig:
    mode = _env_strict_enum(
        ENV_INVERSE_CHECK,
        allowed=tuple(m.value for m in InverseCheck),
        default=InverseCheck.OFF.value,
    )
    homs = _env_strict_enum(ENV_CHECK_HOMS, allowed=("OFF", "ON"), default="OFF")
    return SchemeConfig(
        inverse_check=InverseCheck(mode),
        inverse_samples=_env_int(ENV_INVERSE_SAMPLES, default=4, minimum=1),
        seed=_env_int(ENV_SEED, default=0),
        check_homomorphisms=(homs == "ON"),
    )
