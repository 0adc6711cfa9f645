# domain/cart/variant_rules.py
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, FrozenSet, List, Sequence, Tuple

from domain.cart.schema import STANDARD_CRUSTS, STUFFED_ALIASES, STUFFED_CRUSTS, STUFFED_SIZES


class VariantKind(str, Enum):
    STUFFED = "stuffed"
    STANDARD = "standard"


@dataclass(frozen=True)
class VariantRules:
    kind: VariantKind
    sizes: Tuple[Any, ...]
    crusts: Tuple[str, ...]


def _safe_str(x: Any) -> str:
    return x if isinstance(x, str) else "" if x is None else str(x)


def normalize_item_name(name: Any) -> str:
    """'  The   CHUB ' -> 'the chub'"""
    s = re.sub(r"\s+", " ", _safe_str(name).strip())
    return s.lower()


def resolve_variant_kind(name: Any) -> VariantKind:
    """
    Resolve once per query; every other rule dispatches on the returned kind.
    Unmatched (or non-string) names fall through to STANDARD.
    """
    if normalize_item_name(name) in STUFFED_ALIASES:
        return VariantKind.STUFFED
    return VariantKind.STANDARD


def is_stuffed_variant(name: Any) -> bool:
    return resolve_variant_kind(name) is VariantKind.STUFFED


def _sizes_for_kind(kind: VariantKind, all_sizes: Sequence[Any]) -> List[Any]:
    sizes = list(all_sizes or [])
    if kind is VariantKind.STUFFED:
        return [s for s in sizes if s in STUFFED_SIZES]
    return sizes


def _crusts_for_kind(kind: VariantKind) -> Tuple[str, ...]:
    if kind is VariantKind.STUFFED:
        return STUFFED_CRUSTS
    return STANDARD_CRUSTS


def legal_sizes(name: Any, all_sizes: Sequence[Any]) -> List[Any]:
    """
    Stuffed variants only come in small/medium/large; input order is preserved.
    Everything else gets all_sizes back unchanged.
    """
    return _sizes_for_kind(resolve_variant_kind(name), all_sizes)


def legal_crusts(name: Any) -> FrozenSet[str]:
    return frozenset(_crusts_for_kind(resolve_variant_kind(name)))


def ordered_crusts(name: Any) -> Tuple[str, ...]:
    """Same set as legal_crusts, in display order."""
    return _crusts_for_kind(resolve_variant_kind(name))


def rules_for(name: Any, all_sizes: Sequence[Any]) -> VariantRules:
    kind = resolve_variant_kind(name)
    return VariantRules(
        kind=kind,
        sizes=tuple(_sizes_for_kind(kind, all_sizes)),
        crusts=_crusts_for_kind(kind),
    )
