"""List normalization for relational query results.

Joined query results are inconsistent about "many" relations: an empty join
comes back as ``None`` and a single nested relation may come back as a bare
mapping instead of a one-element list. Everything that should be a list goes
through ``ensure_list`` before reaching response models. Malformed input is
coerced to empty, never raised on.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def safe_list(value: Any) -> list[Any]:
    """Return ``value`` if it is a list, else ``[]``."""
    return value if isinstance(value, list) else []


def ensure_list(value: Any) -> list[Any]:
    """``None`` -> ``[]``, list/tuple -> list, mapping or object -> ``[value]``, scalars -> ``[]``."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    if isinstance(value, (str, bytes, int, float, bool)):
        return []
    return [value]


def normalize_list(value: Any, normalizer: Callable[[Any], R]) -> list[R]:
    """Coerce ``value`` to a list and apply ``normalizer`` to every element."""
    return [normalizer(item) for item in ensure_list(value)]


def _as_str(item: Any) -> str:
    return str(item)


def _as_mapping(item: Any) -> dict[str, Any]:
    return dict(item) if isinstance(item, Mapping) else {}


def _as_is(item: Any) -> Any:
    return item


def normalize_recruitment(raw: Any) -> dict[str, Any] | None:
    """Normalize a recruitment row; ``tags`` falls back to ``[target_body_part]``."""
    if not isinstance(raw, Mapping):
        return None
    out = dict(raw)
    tags = raw.get("tags")
    if isinstance(tags, list):
        out["tags"] = [str(t) for t in tags]
    elif raw.get("target_body_part") is not None:
        out["tags"] = [str(raw["target_body_part"])]
    else:
        out["tags"] = []
    for key in ("images", "participants", "areas"):
        out[key] = ensure_list(raw.get(key))
    owner = raw.get("profiles")
    out["profiles"] = dict(owner) if isinstance(owner, Mapping) else None
    return out


def _recruitment_or_empty(item: Any) -> dict[str, Any]:
    return normalize_recruitment(item) or {}


# field name -> element shape
PROFILE_LIST_FIELDS: dict[str, Callable[[Any], Any]] = {
    "exercises": _as_str,
    "achievements": _as_mapping,
    "certifications": _as_str,
    "recruitments": _recruitment_or_empty,
    "tags": _as_is,
    "interests": _as_is,
    "followers": _as_is,
    "following": _as_is,
    "groups": _as_is,
}


def normalize_profile(raw: Any) -> dict[str, Any] | None:
    """Normalize a profile row so every list-valued field is a list."""
    if not isinstance(raw, Mapping):
        return None
    out = dict(raw)
    for key, shape in PROFILE_LIST_FIELDS.items():
        out[key] = normalize_list(raw.get(key), shape)
    return out
