# Copyright 2017-present Kensho Technologies, LLC.
from typing import List

from graphql import GraphQLError


class GraphQLQueryValidatorError(Exception):
    """Generic error raised by the query validator."""


class InvalidPolicyConfigurationError(GraphQLQueryValidatorError):
    """Exception raised when the cost policy or validator is given an invalid configuration.

    For example:
    - a negative or non-integer maximum cost or depth;
    - an unknown key in a configuration mapping;
    - a filter argument list that is not a collection of strings.
    """


class PolicyFrozenError(GraphQLQueryValidatorError):
    """Exception raised when a policy is amended after it has started serving queries."""


class SchemaRestrictionError(GraphQLQueryValidatorError):
    """Exception raised when restricting a schema would leave it without any query fields."""


class GraphQLParsingError(GraphQLQueryValidatorError):
    """Exception raised when the provided GraphQL string could not be parsed."""


class QueryRejectedError(GraphQLQueryValidatorError):
    """Exception raised when a query fails validation, e.g. by exceeding a cost or depth limit."""

    errors: List[GraphQLError]

    def __init__(self, errors: List[GraphQLError]) -> None:
        """Create a new QueryRejectedError holding the validation errors that caused it."""
        self.errors = list(errors)
        super().__init__(
            "Query rejected with {} validation error(s): {}".format(
                len(self.errors), "; ".join(error.message for error in self.errors)
            )
        )
