# Copyright 2017-present Kensho Technologies, LLC.
"""Commonly-used functions and data types from this package."""
from .argument_costs import ArgumentCostRules, FilterArgLists  # noqa
from .config import ValidatorConfig  # noqa
from .cost_policy import CostPolicy  # noqa
from .exceptions import (  # noqa
    GraphQLParsingError,
    GraphQLQueryValidatorError,
    InvalidPolicyConfigurationError,
    PolicyFrozenError,
    QueryRejectedError,
    SchemaRestrictionError,
)
from .extension_points import FieldCostRegistry, SchemaReadyHooks  # noqa
from .query_validator import QueryValidator  # noqa
from .schema_restriction import (  # noqa
    ContentType,
    build_allowed_root_queries,
    remove_mutation_type,
    restrict_root_queries,
)
from .validation_rules import create_query_complexity_rule, create_query_depth_rule  # noqa


__package_name__ = "graphql-query-validator"
__version__ = "1.0.2"
