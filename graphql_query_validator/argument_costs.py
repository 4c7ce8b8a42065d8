# Copyright 2017-present Kensho Technologies, LLC.
"""Per-argument cost classification.

Every argument name maps to a rule in a fixed table. Approved arguments carry a cost of zero,
page size limits are metered, "where" filter clauses are classified by the combination of their
sub-arguments, and anything not in the table carries a disqualifying cost.
"""
from dataclasses import dataclass, field
from decimal import Decimal
import math
import re
from typing import (
    AbstractSet,
    Any,
    Callable,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Mapping,
    Optional,
    Union,
)

from .exceptions import InvalidPolicyConfigurationError


# Cost of an argument that has not been vetted. Any cost above zero disqualifies a field.
UNVETTED_ARGUMENT_COST = 100

# Page size limits of this size or larger carry a nonzero cost.
PAGE_SIZE_COST_DIVISOR = 51

PAGINATION_CURSOR_ARGUMENTS = frozenset({"after", "before"})
PAGE_SIZE_ARGUMENTS = frozenset({"first", "last"})
RESOURCE_LOOKUP_ARGUMENTS = frozenset({"slug", "uri"})
FILTER_CLAUSE_ARGUMENT = "where"

# Getting a resource by ID. Type-specific aliases can be added through configuration.
DEFAULT_ID_ARGUMENT_NAMES = frozenset({"id", "mediaItemId", "pageId", "postId"})

# Only ONE of these "where" sub-arguments may be used at a time.
DEFAULT_RESTRICTED_WHERE_ARGS = frozenset(
    {"location", "name", "orderby", "search", "slug", "tagSlugIn"}
)

# These "where" sub-arguments are always allowed, alone or in combination.
DEFAULT_WHITELISTED_WHERE_ARGS: FrozenSet[str] = frozenset()

_LEADING_NUMBER_PATTERN = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")
# Magnitude that numeric strings are clamped to, so huge exponents stay cheap to convert.
_MAX_COERCED_MAGNITUDE = 2 ** 63 - 1


def coerce_to_int(value: Any) -> int:
    """Permissively convert an argument value to an int, never raising.

    Strings are read up to the end of their leading number ("75abc" becomes 75), which may have
    a fraction or an exponent ("1e3" becomes 1000). Numbers are truncated toward zero, numeric
    strings are clamped to 2**63 - 1 in magnitude, and anything without a numeric reading (None,
    "abc", lists, mappings, NaN) becomes 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        return int(value)
    if isinstance(value, str):
        match = _LEADING_NUMBER_PATTERN.match(value)
        if match is None:
            return 0
        number = Decimal(match.group(1))
        # Compared without arithmetic, which could overflow the decimal context.
        if number > _MAX_COERCED_MAGNITUDE:
            return _MAX_COERCED_MAGNITUDE
        if number < -_MAX_COERCED_MAGNITUDE:
            return -_MAX_COERCED_MAGNITUDE
        return int(number)
    return 0


def page_size_cost(value: Any) -> int:
    """Return the cost of a page size limit: 50 or fewer items are free."""
    limit = coerce_to_int(value)
    # Integer division truncating toward zero, so negative limits never carry a positive cost.
    if limit < 0:
        return -(-limit // PAGE_SIZE_COST_DIVISOR)
    return limit // PAGE_SIZE_COST_DIVISOR


@dataclass(frozen=True)
class FilterArgLists:
    """The two lists of "where" sub-argument names that may be used at no cost."""

    # Free only when used alone, after whitelisted names are discounted.
    restricted: FrozenSet[str] = DEFAULT_RESTRICTED_WHERE_ARGS
    # Always free, and never counted toward the combination check.
    whitelisted: FrozenSet[str] = DEFAULT_WHITELISTED_WHERE_ARGS

    def __post_init__(self) -> None:
        """Normalize both lists into frozensets."""
        object.__setattr__(self, "restricted", _to_frozenset_of_names(self.restricted))
        object.__setattr__(self, "whitelisted", _to_frozenset_of_names(self.whitelisted))

    def amended(
        self,
        restricted: Optional[Iterable[str]] = None,
        whitelisted: Optional[Iterable[str]] = None,
    ) -> "FilterArgLists":
        """Return a copy with the given lists replaced. A None list is left unchanged."""
        return FilterArgLists(
            restricted=self.restricted if restricted is None else restricted,
            whitelisted=self.whitelisted if whitelisted is None else whitelisted,
        )


def _to_frozenset_of_names(names: Iterable[str]) -> FrozenSet[str]:
    """Convert a collection of argument names to a frozenset, checking that they are strings."""
    if isinstance(names, str):
        raise InvalidPolicyConfigurationError(
            "Expected a collection of argument names, but got a single string: {}".format(names)
        )
    result = frozenset(names)
    non_string_names = {name for name in result if not isinstance(name, str)}
    if non_string_names:
        raise InvalidPolicyConfigurationError(
            "Expected argument names to be strings, but got: {}".format(non_string_names)
        )
    return result


@dataclass(frozen=True)
class FixedCost:
    """An argument whose cost does not depend on its value."""

    cost: int


@dataclass(frozen=True)
class ComputedCost:
    """An argument whose cost is computed from its value."""

    compute: Callable[[Any], int]


@dataclass(frozen=True)
class DelegatedCost:
    """An argument whose value is classified by a sub-rule, e.g. a "where" filter clause."""

    sub_rule: Callable[[Any], int]


ArgumentCostRule = Union[FixedCost, ComputedCost, DelegatedCost]


@dataclass(frozen=True)
class ArgumentCostRules:
    """The cost table for field arguments, including the "where" filter clause sub-rule.

    Instances are immutable and safe to share between concurrent evaluations. Use
    with_filter_arg_lists() to derive a rule set with different filter argument lists.
    """

    filter_arg_lists: FilterArgLists = field(default_factory=FilterArgLists)
    id_argument_names: FrozenSet[str] = DEFAULT_ID_ARGUMENT_NAMES
    default_rule: ArgumentCostRule = FixedCost(UNVETTED_ARGUMENT_COST)
    rules: Mapping[str, ArgumentCostRule] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Resolve the rule table once, so lookups are a single dict access."""
        object.__setattr__(
            self, "id_argument_names", frozenset(self.id_argument_names) | {"id"}
        )
        object.__setattr__(self, "rules", self._build_rule_table())

    def _build_rule_table(self) -> Dict[str, ArgumentCostRule]:
        """Build the mapping of argument name to cost rule."""
        rules: Dict[str, ArgumentCostRule] = {}
        free = FixedCost(0)
        for name in PAGINATION_CURSOR_ARGUMENTS:
            rules[name] = free
        for name in PAGE_SIZE_ARGUMENTS:
            rules[name] = ComputedCost(page_size_cost)
        for name in self.id_argument_names:
            rules[name] = free
        for name in RESOURCE_LOOKUP_ARGUMENTS:
            rules[name] = free
        rules[FILTER_CLAUSE_ARGUMENT] = DelegatedCost(self._cost_of_filter_clause_value)
        return rules

    def with_filter_arg_lists(
        self,
        restricted: Optional[Iterable[str]] = None,
        whitelisted: Optional[Iterable[str]] = None,
    ) -> "ArgumentCostRules":
        """Return a new rule set with the given filter argument lists replaced."""
        return ArgumentCostRules(
            filter_arg_lists=self.filter_arg_lists.amended(restricted, whitelisted),
            id_argument_names=self.id_argument_names,
            default_rule=self.default_rule,
        )

    def get_rule(self, name: str) -> ArgumentCostRule:
        """Return the cost rule for the argument name, or the default rule for unknown names."""
        return self.rules.get(name, self.default_rule)

    def cost_of_argument(self, name: str, value: Any) -> int:
        """Return the cost of a single argument. Known-good arguments carry no cost."""
        rule = self.get_rule(name)
        if isinstance(rule, FixedCost):
            return rule.cost
        elif isinstance(rule, ComputedCost):
            return rule.compute(value)
        elif isinstance(rule, DelegatedCost):
            return rule.sub_rule(value)
        else:
            raise AssertionError("Unreachable code reached: unexpected rule {}".format(rule))

    def _cost_of_filter_clause_value(self, value: Any) -> int:
        """Classify the value of a "where" argument by the names of its sub-arguments."""
        if value is None:
            # A null filter clause filters nothing.
            return 0
        if not isinstance(value, Mapping):
            return UNVETTED_ARGUMENT_COST
        return self.cost_of_filter_clause(value.keys())

    def cost_of_filter_clause(self, sub_arg_names: Iterable[str]) -> int:
        """Return the cost of a "where" clause given the names of its sub-arguments.

        The where clause is extremely powerful and therefore potentially exploitable to produce
        costly queries. At most one restricted sub-argument is allowed, in addition to any number
        of whitelisted ones.

        Args:
            sub_arg_names: names of the sub-arguments used in the where clause

        Returns:
            0 if the combination is allowed, UNVETTED_ARGUMENT_COST otherwise
        """
        remaining_names = _remove_names(sub_arg_names, self.filter_arg_lists.whitelisted)

        if not remaining_names:
            return 0

        if len(remaining_names) == 1 and remaining_names[0] in self.filter_arg_lists.restricted:
            return 0

        return UNVETTED_ARGUMENT_COST


def _remove_names(names: Iterable[str], names_to_remove: AbstractSet[str]) -> List[str]:
    """Return the distinct names not in names_to_remove, preserving order."""
    remaining_names: List[str] = []
    for name in names:
        if name not in names_to_remove and name not in remaining_names:
            remaining_names.append(name)
    return remaining_names
