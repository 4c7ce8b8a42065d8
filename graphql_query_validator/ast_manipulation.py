# Copyright 2017-present Kensho Technologies, LLC.
from typing import Union

from graphql import GraphQLSchema, build_ast_schema
from graphql.error import GraphQLSyntaxError
from graphql.language.ast import DocumentNode
from graphql.language.parser import parse

from .exceptions import GraphQLParsingError, SchemaRestrictionError


def safe_parse_graphql(graphql_string: str) -> DocumentNode:
    """Return an AST representation of the given GraphQL input, reraising GraphQL library errors."""
    try:
        ast = parse(graphql_string)
    except GraphQLSyntaxError as e:
        raise GraphQLParsingError(e) from e

    return ast


def ensure_document_ast(query: Union[str, DocumentNode]) -> DocumentNode:
    """Return the query as a Document AST, parsing it first if it is a string."""
    if isinstance(query, DocumentNode):
        return query
    elif isinstance(query, str):
        return safe_parse_graphql(query)
    else:
        raise AssertionError(
            'Expected "query" to be a string or DocumentNode, but got {} of type {}.'.format(
                query, type(query)
            )
        )


def safe_build_ast_schema(schema_ast: DocumentNode) -> GraphQLSchema:
    """Build a schema from its AST, reraising GraphQL library errors as SchemaRestrictionError."""
    try:
        return build_ast_schema(schema_ast)
    except Exception as e:  # Can't be more specific, build_ast_schema throws Exceptions
        raise SchemaRestrictionError(
            "The resulting schema is invalid. Message: {}".format(e)
        ) from e


def get_query_type_name(schema: GraphQLSchema) -> str:
    """Get the name of the query type of the input schema (e.g. RootQuery)."""
    if schema.query_type is None:
        raise SchemaRestrictionError("The schema has no query type.")
    return schema.query_type.name
