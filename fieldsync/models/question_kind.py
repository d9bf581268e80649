"""Item type, rule action and condition operator vocabularies.

Provides simple constants containers instead of Enums to keep imports
lightweight in architectural tests and to let stored templates carry
free-form strings that the evaluator tolerates.
"""

from __future__ import annotations


class ItemType:
    TEXT = "text"
    YES_NO = "yes_no"
    SINGLE_SELECT = "single_select"
    MULTI_SELECT = "multi_select"
    NUMERIC = "numeric"

    ALL = frozenset({TEXT, YES_NO, SINGLE_SELECT, MULTI_SELECT, NUMERIC})

    # Spellings found in stored templates
    ALIASES = {
        "select": SINGLE_SELECT,
        "single-select": SINGLE_SELECT,
        "singleselect": SINGLE_SELECT,
        "multi-select": MULTI_SELECT,
        "multiselect": MULTI_SELECT,
        "yes-no": YES_NO,
        "yesno": YES_NO,
        "boolean": YES_NO,
        "bool": YES_NO,
        "number": NUMERIC,
    }


class RuleAction:
    SHOW = "show"
    HIDE = "hide"
    REQUIRE = "require"
    OPTIONAL = "optional"

    VISIBILITY = frozenset({SHOW, HIDE})
    REQUIREMENT = frozenset({REQUIRE, OPTIONAL})
    ALL = VISIBILITY | REQUIREMENT


class ConditionOperator:
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"

    ALL = frozenset({EQUALS, NOT_EQUALS, CONTAINS, GREATER_THAN, LESS_THAN, IS_EMPTY, IS_NOT_EMPTY})
    # Operators that are evaluated even when the referenced question is unanswered
    UNANSWERED_AWARE = frozenset({IS_EMPTY, IS_NOT_EMPTY})

    ALIASES = {
        "not-equals": NOT_EQUALS,
        "notequals": NOT_EQUALS,
        "not_equal": NOT_EQUALS,
        "greater-than": GREATER_THAN,
        "greaterthan": GREATER_THAN,
        "gt": GREATER_THAN,
        "less-than": LESS_THAN,
        "lessthan": LESS_THAN,
        "lt": LESS_THAN,
        "empty": IS_EMPTY,
        "is-empty": IS_EMPTY,
        "not_empty": IS_NOT_EMPTY,
        "not-empty": IS_NOT_EMPTY,
        "is-not-empty": IS_NOT_EMPTY,
    }


def normalize_item_type(raw: object) -> str:
    token = str(raw or "").strip().lower()
    return ItemType.ALIASES.get(token, token)


def normalize_operator(raw: object) -> str:
    token = str(raw or "").strip().lower()
    return ConditionOperator.ALIASES.get(token, token)


__all__ = [
    "ItemType",
    "RuleAction",
    "ConditionOperator",
    "normalize_item_type",
    "normalize_operator",
]
