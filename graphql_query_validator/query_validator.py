# Copyright 2017-present Kensho Technologies, LLC.
import logging
from typing import Any, Dict, Iterable, List, Optional, Type, Union
from weakref import WeakSet

from graphql import GraphQLError, GraphQLSchema, specified_rules, validate
from graphql.language.ast import DocumentNode
from graphql.validation import ASTValidationRule

from .ast_manipulation import ensure_document_ast
from .config import ValidatorConfig
from .cost_policy import CostPolicy
from .exceptions import QueryRejectedError
from .extension_points import FieldCostRegistry, SchemaReadyHook, SchemaReadyHooks
from .schema_restriction import remove_mutation_type, restrict_root_queries
from .validation_rules import create_query_complexity_rule, create_query_depth_rule


logger = logging.getLogger(__name__)


class QueryValidator:
    """Prevent a GraphQL service from being abused with expensive arguments or deep queries.

    Wiring happens in two phases. While configuring, hooks may be added and the filter argument
    lists amended. prepare_schema() then runs the schema-ready hooks, freezes the cost policy and
    registers its cost evaluator on every root query field. After that, queries are validated
    against the depth and cost limits before they run.
    """

    def __init__(self, config: Optional[ValidatorConfig] = None) -> None:
        """Create a new QueryValidator, using the default config if None is given."""
        self.config = config if config is not None else ValidatorConfig()
        self.policy = CostPolicy.from_config(self.config)
        self.registry = FieldCostRegistry()
        self.schema_ready_hooks = SchemaReadyHooks()
        # Weak, so that discarded schemas are not kept alive by the validator.
        self._prepared_schemas: "WeakSet[GraphQLSchema]" = WeakSet()

    def add_schema_ready_hook(self, hook: SchemaReadyHook) -> None:
        """Add a configuration hook to run once, right before the first schema is prepared."""
        self.schema_ready_hooks.add(hook)

    def amend_filter_arg_lists(
        self,
        restricted: Optional[Iterable[str]] = None,
        whitelisted: Optional[Iterable[str]] = None,
    ) -> None:
        """Override the restricted and/or whitelisted "where" argument lists of the policy."""
        self.policy.amend_filter_arg_lists(restricted=restricted, whitelisted=whitelisted)

    def restrict_schema(self, schema_ast: DocumentNode) -> DocumentNode:
        """Return the schema AST with mutations and disallowed root queries removed, per config."""
        if self.config.disable_mutations:
            schema_ast = remove_mutation_type(schema_ast)
        if self.config.allowed_root_queries is not None:
            schema_ast = restrict_root_queries(schema_ast, self.config.allowed_root_queries)
        return schema_ast

    def is_prepared(self, schema: GraphQLSchema) -> bool:
        """Return True if prepare_schema() has been called with this schema."""
        return schema in self._prepared_schemas

    def prepare_schema(self, schema: GraphQLSchema) -> None:
        """Finish configuration and register the policy's cost evaluator on the schema.

        Calling this more than once with the same schema does nothing.
        """
        if self.is_prepared(schema):
            return

        self.schema_ready_hooks.run()
        self.policy.freeze()
        self.registry.register_root_query_fields(schema, self.policy.compute_field_cost)
        self._prepared_schemas.add(schema)

    def get_validation_rules(
        self, variable_values: Optional[Dict[str, Any]] = None
    ) -> List[Type[ASTValidationRule]]:
        """Return the depth and cost validation rules, for use with graphql-core's validate()."""
        return [
            create_query_depth_rule(self.policy.max_depth),
            create_query_complexity_rule(self.policy.max_cost, self.registry, variable_values),
        ]

    def validate_query(
        self,
        schema: GraphQLSchema,
        query: Union[str, DocumentNode],
        variable_values: Optional[Dict[str, Any]] = None,
    ) -> List[GraphQLError]:
        """Validate the query against the schema, including the depth and cost limits.

        Args:
            schema: schema to validate against. Prepared first, if it has not been already.
            query: query string or Document AST
            variable_values: values of the query's variables, if any

        Returns:
            list of validation errors, empty if the query may be executed

        Raises:
            GraphQLParsingError if the query string could not be parsed
        """
        self.prepare_schema(schema)
        document_ast = ensure_document_ast(query)
        rules = list(specified_rules) + self.get_validation_rules(variable_values)
        return validate(schema, document_ast, rules)

    def assert_query_is_admissible(
        self,
        schema: GraphQLSchema,
        query: Union[str, DocumentNode],
        variable_values: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Raise QueryRejectedError if the query fails validation, e.g. by exceeding a limit."""
        errors = self.validate_query(schema, query, variable_values)
        if errors:
            raise QueryRejectedError(errors)
