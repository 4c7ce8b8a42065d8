# Copyright 2017-present Kensho Technologies, LLC.
from textwrap import dedent

from graphql import GraphQLSchema, build_ast_schema, parse


SCHEMA_TEXT = dedent(
    """\
    schema {
      query: RootQuery
      mutation: RootMutation
    }

    input PostWhereArgs {
      author: Int
      name: String
      orderby: String
      search: String
    }

    type Comment {
      id: ID!
      content: String
      author: User
    }

    type Post {
      id: ID!
      title: String
      author: User
      comments(first: Int, after: String): [Comment]
    }

    type User {
      id: ID!
      name: String
      posts(first: Int, where: PostWhereArgs): [Post]
    }

    type RootMutation {
      createPost(title: String): Post
    }

    type RootQuery {
      plugins: [String]
      post(id: ID, postId: Int, slug: String): Post
      posts(
        first: Int
        last: Int
        after: String
        before: String
        where: PostWhereArgs
        unknown: Boolean
      ): [Post]
      user(id: ID): User
      users(first: Int): [User]
    }
"""
)


def get_schema() -> GraphQLSchema:
    """Return a new copy of the test schema."""
    return build_ast_schema(parse(SCHEMA_TEXT))
