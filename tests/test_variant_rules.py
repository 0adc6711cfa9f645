from __future__ import annotations

import pytest

from domain.cart.variant_rules import (
    VariantKind,
    is_stuffed_variant,
    legal_crusts,
    legal_sizes,
    ordered_crusts,
    resolve_variant_kind,
    rules_for,
)

ALL_SIZES = ["personal", "small", "xlarge", "large", "medium"]


@pytest.mark.parametrize("name", ["Stuffed Pizza", "stuffed pizza", "the chub", "The Chub", "  THE   chub "])
def test_stuffed_aliases_match_case_insensitively(name):
    assert is_stuffed_variant(name) is True
    assert resolve_variant_kind(name) is VariantKind.STUFFED


@pytest.mark.parametrize("name", ["Pepperoni Pizza", "Stuffed Crust Pizza", "chub", "", None, 42])
def test_everything_else_is_standard(name):
    assert is_stuffed_variant(name) is False
    assert resolve_variant_kind(name) is VariantKind.STANDARD


def test_stuffed_sizes_are_filtered_in_input_order():
    assert legal_sizes("Stuffed Pizza", ALL_SIZES) == ["small", "large", "medium"]


def test_stuffed_size_filter_matches_size_codes_exactly():
    assert legal_sizes("The Chub", ["Small", "small", "XLarge", "LARGE", "large"]) == ["small", "large"]


def test_standard_sizes_pass_through_unchanged():
    assert legal_sizes("Pepperoni Pizza", ALL_SIZES) == ALL_SIZES
    assert legal_sizes("Pepperoni Pizza", []) == []


def test_crust_sets():
    assert legal_crusts("the chub") == frozenset({"stuffed"})
    assert legal_crusts("Cheese Pizza") == frozenset({"thin", "double_dough", "gluten_free"})
    assert ordered_crusts("Cheese Pizza") == ("thin", "double_dough", "gluten_free")


def test_rules_for_bundles_kind_sizes_and_crusts():
    rules = rules_for("Stuffed Pizza", ALL_SIZES)
    assert rules.kind is VariantKind.STUFFED
    assert rules.sizes == ("small", "large", "medium")
    assert rules.crusts == ("stuffed",)
