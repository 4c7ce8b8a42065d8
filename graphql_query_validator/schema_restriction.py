# Copyright 2017-present Kensho Technologies, LLC.
"""Restrict a schema to the root queries we want to support, and optionally drop mutations.

Allowing only an explicit list of root queries excludes data types we definitely don't want to
expose, and ensures that root queries added by later schema versions won't catch us by surprise.
"""
from copy import copy
from dataclasses import dataclass
from typing import AbstractSet, Any, FrozenSet, Iterable, Optional

from graphql.language.ast import (
    DocumentNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    OperationType,
    SchemaDefinitionNode,
)
from graphql.language.visitor import REMOVE, Visitor, visit

from .ast_manipulation import get_query_type_name, safe_build_ast_schema
from .exceptions import SchemaRestrictionError


# Root queries for built-in types, allowed in both singular and plural form.
DEFAULT_BUILT_IN_QUERIES = ("menu", "menuItem", "user")


@dataclass(frozen=True)
class ContentType:
    """A queryable content type, named the way it appears among the root queries."""

    single_name: str  # e.g. "post"
    plural_name: str  # e.g. "posts"
    # Post-like types also have a lookup root query named "{single_name}By", e.g. "postBy".
    has_by_query: bool = False


def build_allowed_root_queries(
    content_types: Iterable[ContentType], built_ins: Iterable[str] = DEFAULT_BUILT_IN_QUERIES
) -> FrozenSet[str]:
    """Return the names of the root queries for the given content types and built-ins.

    Args:
        content_types: the content types to allow querying
        built_ins: names of built-in root queries. Each is allowed in singular and plural form.

    Returns:
        frozenset of root query names
    """
    allowed_queries = set()
    for content_type in content_types:
        allowed_queries.add(content_type.single_name)
        allowed_queries.add(content_type.plural_name)
        if content_type.has_by_query:
            allowed_queries.add(content_type.single_name + "By")

    for built_in in built_ins:
        allowed_queries.add(built_in)
        allowed_queries.add(built_in + "s")

    return frozenset(allowed_queries)


def _get_mutation_type_name(schema_ast: DocumentNode) -> Optional[str]:
    """Return the name of the mutation type, or None if the schema has no mutation type."""
    schema = safe_build_ast_schema(schema_ast)
    if schema.mutation_type is None:
        return None
    return schema.mutation_type.name


class RemoveMutationTypeVisitor(Visitor):
    """Remove the mutation type, its extensions, and its entry in the schema definition."""

    def __init__(self, mutation_type_name: str) -> None:
        """Create a visitor removing the mutation type with the given name."""
        super().__init__()
        self.mutation_type_name = mutation_type_name

    def enter_schema_definition(self, node: SchemaDefinitionNode, *args: Any) -> Any:
        """Drop the mutation operation type from the schema definition."""
        operation_types = [
            operation_type
            for operation_type in node.operation_types
            if operation_type.operation != OperationType.MUTATION
        ]
        if len(operation_types) == len(node.operation_types):
            return None
        new_node = copy(node)
        new_node.operation_types = operation_types
        return new_node

    def enter_object_type_definition(self, node: ObjectTypeDefinitionNode, *args: Any) -> Any:
        """Remove the definition if it is the mutation type."""
        if node.name.value == self.mutation_type_name:
            return REMOVE
        return None

    def enter_object_type_extension(self, node: ObjectTypeExtensionNode, *args: Any) -> Any:
        """Remove the extension if it extends the mutation type."""
        if node.name.value == self.mutation_type_name:
            return REMOVE
        return None


def remove_mutation_type(schema_ast: DocumentNode) -> DocumentNode:
    """Return a new schema AST without the mutation type. The input AST is not modified.

    This also communicates that mutations are not allowed to anyone crawling the schema.
    """
    mutation_type_name = _get_mutation_type_name(schema_ast)
    if mutation_type_name is None:
        return schema_ast

    new_schema_ast = visit(schema_ast, RemoveMutationTypeVisitor(mutation_type_name))
    safe_build_ast_schema(new_schema_ast)
    return new_schema_ast


class RestrictRootQueriesVisitor(Visitor):
    """Remove query type fields that are not in the set of allowed root queries."""

    def __init__(self, query_type_name: str, allowed_query_names: AbstractSet[str]) -> None:
        """Create a visitor removing root query fields.

        Args:
            query_type_name: name of the query type in the schema
            allowed_query_names: names of query type fields to keep. All others are removed.
        """
        super().__init__()
        self.query_type_name = query_type_name
        self.allowed_query_names = allowed_query_names

    def _remove_disallowed_fields(self, node: Any) -> Any:
        """Return a copy of the node keeping only allowed fields, or None if nothing changed."""
        if node.name.value != self.query_type_name or not node.fields:
            return None
        kept_fields = [
            field for field in node.fields if field.name.value in self.allowed_query_names
        ]
        if len(kept_fields) == len(node.fields):
            return None
        if not kept_fields and isinstance(node, ObjectTypeExtensionNode):
            return REMOVE
        new_node = copy(node)
        new_node.fields = kept_fields
        return new_node

    def enter_object_type_definition(self, node: ObjectTypeDefinitionNode, *args: Any) -> Any:
        """Remove disallowed root queries from the query type."""
        return self._remove_disallowed_fields(node)

    def enter_object_type_extension(self, node: ObjectTypeExtensionNode, *args: Any) -> Any:
        """Remove disallowed root queries from extensions of the query type."""
        return self._remove_disallowed_fields(node)


def restrict_root_queries(
    schema_ast: DocumentNode, allowed_query_names: AbstractSet[str]
) -> DocumentNode:
    """Return a new schema AST whose query type only has the allowed root query fields.

    Args:
        schema_ast: Document, representing the schema to restrict. It is not modified.
        allowed_query_names: names of the root query fields to keep

    Returns:
        Document, representing the schema with all other root query fields removed

    Raises:
        SchemaRestrictionError if no root query field would remain, or if the resulting schema
        is invalid for some other reason
    """
    schema = safe_build_ast_schema(schema_ast)
    query_type_name = get_query_type_name(schema)

    remaining_queries = set(schema.query_type.fields) & set(allowed_query_names)
    if not remaining_queries:
        raise SchemaRestrictionError(
            "None of the root queries of type {} are allowed. Allowed root queries: {}".format(
                query_type_name, sorted(allowed_query_names)
            )
        )

    visitor = RestrictRootQueriesVisitor(query_type_name, frozenset(allowed_query_names))
    restricted_schema_ast = visit(schema_ast, visitor)
    # Types only reachable through removed root queries are kept, and may now be unreachable.
    safe_build_ast_schema(restricted_schema_ast)
    return restricted_schema_ast
