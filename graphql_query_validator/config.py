# Copyright 2017-present Kensho Technologies, LLC.
from dataclasses import dataclass, fields
from typing import Any, FrozenSet, Iterable, Mapping, Optional

import funcy

from .argument_costs import (
    DEFAULT_ID_ARGUMENT_NAMES,
    DEFAULT_RESTRICTED_WHERE_ARGS,
    DEFAULT_WHITELISTED_WHERE_ARGS,
)
from .exceptions import InvalidPolicyConfigurationError


# Max query cost. This corresponds to the total cost of all fields at all query levels. The
# default cost to query a field is 1, which includes all type names, edges, nodes, etc.
DEFAULT_MAX_COST = 1000

# Max query depth. A depth of 11 accommodates typical content queries and the introspection query.
DEFAULT_MAX_DEPTH = 11


def validate_limit(name: str, value: Any) -> None:
    """Ensure that a cost or depth limit is a non-negative int."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPolicyConfigurationError(
            "Expected {} to be an int, but got {} of type {}.".format(name, value, type(value))
        )
    if value < 0:
        raise InvalidPolicyConfigurationError(
            "Expected {} to be non-negative, but got {}.".format(name, value)
        )


def _to_optional_frozenset(name: str, value: Optional[Iterable[str]]) -> Optional[FrozenSet[str]]:
    """Convert a collection of names to a frozenset, rejecting bare strings."""
    if value is None:
        return None
    if isinstance(value, str):
        raise InvalidPolicyConfigurationError(
            "Expected {} to be a collection of names, but got a single string: {}".format(
                name, value
            )
        )
    return frozenset(value)


@dataclass(frozen=True)
class ValidatorConfig:
    """Configuration for the query validator, read once at startup."""

    # Total cost ceiling across an entire query.
    max_cost: int = DEFAULT_MAX_COST
    # Maximum field nesting depth, enforced by the depth validation rule.
    max_depth: int = DEFAULT_MAX_DEPTH

    restricted_where_args: FrozenSet[str] = DEFAULT_RESTRICTED_WHERE_ARGS
    whitelisted_where_args: FrozenSet[str] = DEFAULT_WHITELISTED_WHERE_ARGS

    # Argument names that look a resource up by ID, e.g. "postId". "id" is always included.
    id_argument_names: FrozenSet[str] = DEFAULT_ID_ARGUMENT_NAMES

    # Remove the mutation root type from the schema.
    disable_mutations: bool = True
    # Names of query root fields to keep in the schema. None keeps all of them.
    allowed_root_queries: Optional[FrozenSet[str]] = None

    def __post_init__(self) -> None:
        """Validate the limits and normalize name collections into frozensets."""
        validate_limit("max_cost", self.max_cost)
        validate_limit("max_depth", self.max_depth)
        for name in ("restricted_where_args", "whitelisted_where_args", "id_argument_names"):
            object.__setattr__(self, name, _to_optional_frozenset(name, getattr(self, name)))
            if getattr(self, name) is None:
                raise InvalidPolicyConfigurationError(
                    "Expected {} to be a collection of names, but got None.".format(name)
                )
        object.__setattr__(
            self,
            "allowed_root_queries",
            _to_optional_frozenset("allowed_root_queries", self.allowed_root_queries),
        )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "ValidatorConfig":
        """Build a config from a plain mapping, e.g. one loaded from a settings file.

        Args:
            mapping: dict of config field name -> value. Missing fields take their defaults.

        Returns:
            ValidatorConfig with the given values

        Raises:
            InvalidPolicyConfigurationError if the mapping has keys that are not config fields,
            or if any value is invalid
        """
        field_names = {config_field.name for config_field in fields(cls)}
        unknown_keys = set(mapping.keys()) - field_names
        if unknown_keys:
            raise InvalidPolicyConfigurationError(
                "Unknown configuration keys {}. Expected a subset of {}.".format(
                    sorted(unknown_keys), sorted(field_names)
                )
            )
        return cls(**funcy.project(mapping, field_names))
