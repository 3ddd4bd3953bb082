"""
npm semver range handling on top of ``semantic_version``.
"""

import re
from typing import Iterable, Optional

import semantic_version

_OPERATOR_GAP = re.compile(r"([<>=~^]+)\s+(?=[0-9vxX*])")
_V_PREFIX = re.compile(r"(^|[\s<>=~^])[vV](?=\d)")


def normalize_range(range_spec: str) -> str:
    """
    Collapse whitespace the npm grammar tolerates but NpmSpec does not,
    e.g. ``">= 1.2.0  <2"`` becomes ``">=1.2.0 <2"``, and drop the ``v``
    prefix npm allows on any version, so ``"~v1.2.0"`` becomes ``"~1.2.0"``.
    """
    collapsed = " ".join(range_spec.split())
    return _V_PREFIX.sub(r"\1", _OPERATOR_GAP.sub(r"\1", collapsed))


def is_valid_range(range_spec: str) -> bool:
    """True when ``range_spec`` parses as an npm semver range or exact version."""
    if not isinstance(range_spec, str) or not range_spec.strip():
        return False
    try:
        semantic_version.NpmSpec(normalize_range(range_spec))
    except ValueError:
        return False
    return True


def max_satisfying(versions: Iterable[str], range_spec: str) -> Optional[str]:
    """
    Greatest version in ``versions`` satisfying ``range_spec``.

    Returns None when nothing matches or the range itself is invalid.
    Prereleases only match ranges that name a prerelease of the same
    major.minor.patch, following npm rules.
    """
    try:
        spec = semantic_version.NpmSpec(normalize_range(range_spec))
    except ValueError:
        return None

    originals = {}
    for version in versions:
        try:
            originals[semantic_version.Version(version)] = version
        except ValueError:
            continue

    best = spec.select(originals.keys())
    return originals[best] if best is not None else None
