# Copyright 2017-present Kensho Technologies, LLC.
import logging
from textwrap import dedent

from graphql import build_ast_schema, parse

from graphql_query_validator import (
    ContentType,
    QueryValidator,
    ValidatorConfig,
    build_allowed_root_queries,
)


logging.basicConfig(level=logging.INFO)

schema_text = dedent(
    """\
    input PostWhereArgs {
      author: Int
      orderby: String
    }

    type Post {
      id: ID!
      title: String
    }

    type Query {
      post(id: ID): Post
      posts(first: Int, after: String, where: PostWhereArgs): [Post]
      plugins: [String]
    }

    type Mutation {
      createPost(title: String): Post
    }
"""
)

allowed_root_queries = build_allowed_root_queries([ContentType("post", "posts", has_by_query=True)])
validator = QueryValidator(ValidatorConfig(allowed_root_queries=allowed_root_queries))
validator.add_schema_ready_hook(lambda: validator.amend_filter_arg_lists(restricted={"author"}))

# Mutations and the "plugins" root query are removed from the schema.
schema = build_ast_schema(validator.restrict_schema(parse(schema_text)))

queries = [
    '{ posts(first: 50, where: {author: 1}) { id title } }',
    '{ posts(first: 500) { id title } }',
    '{ posts(where: {author: 1, orderby: "DATE"}) { id } }',
]
for query in queries:
    errors = validator.validate_query(schema, query)
    print(query, "->", [error.message for error in errors] or "OK")
