# Copyright 2017-present Kensho Technologies, LLC.
import gc
import unittest

from graphql import build_ast_schema, parse

from ..config import ValidatorConfig
from ..exceptions import GraphQLParsingError, PolicyFrozenError, QueryRejectedError
from ..query_validator import QueryValidator
from .test_helpers import SCHEMA_TEXT, get_schema


class QueryValidatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.schema = get_schema()

    def test_admissible_queries(self) -> None:
        validator = QueryValidator()
        queries = [
            "{ posts { id title author { name } } }",
            '{ posts(first: 50, after: "abc", where: {orderby: "DATE"}) { id } }',
            '{ post(postId: 5) { id comments(first: 1000) { content } } }',
        ]
        for query in queries:
            self.assertEqual([], validator.validate_query(self.schema, query), msg=query)
            validator.assert_query_is_admissible(self.schema, query)

    def test_rejected_queries(self) -> None:
        validator = QueryValidator()
        query = '{ posts(where: {orderby: "DATE", name: "x"}) { id } }'

        errors = validator.validate_query(self.schema, query)
        self.assertEqual(
            ["Max query complexity should be 1000 but got 100000."],
            [error.message for error in errors],
        )

        with self.assertRaises(QueryRejectedError) as context:
            validator.assert_query_is_admissible(self.schema, query)
        self.assertEqual(errors[0].message, context.exception.errors[0].message)

    def test_depth_limit(self) -> None:
        validator = QueryValidator(ValidatorConfig(max_depth=2))
        query = "{ posts { author { posts { author { name } } } } }"
        errors = validator.validate_query(self.schema, query)
        self.assertEqual(
            ["Max query depth should be 2 but got 3."], [error.message for error in errors]
        )

    def test_variables(self) -> None:
        validator = QueryValidator()
        query = "query Posts($limit: Int) { posts(first: $limit) { id } }"
        self.assertEqual([], validator.validate_query(self.schema, query, {"limit": 50}))
        self.assertEqual(1, len(validator.validate_query(self.schema, query, {"limit": 51})))

    def test_document_ast_input(self) -> None:
        validator = QueryValidator()
        self.assertEqual([], validator.validate_query(self.schema, parse("{ posts { id } }")))

    def test_invalid_query(self) -> None:
        validator = QueryValidator()
        with self.assertRaises(GraphQLParsingError):
            validator.validate_query(self.schema, "{ posts { id }")

        errors = validator.validate_query(self.schema, "{ posts { nope } }")
        self.assertEqual(1, len(errors))

    def test_schema_ready_hook_amends_policy(self) -> None:
        validator = QueryValidator()
        validator.add_schema_ready_hook(
            lambda: validator.amend_filter_arg_lists(whitelisted={"orderby"})
        )
        query = '{ posts(where: {orderby: "DATE", name: "x"}) { id } }'

        self.assertFalse(validator.policy.is_frozen)
        self.assertEqual([], validator.validate_query(self.schema, query))
        self.assertTrue(validator.policy.is_frozen)
        self.assertTrue(validator.is_prepared(self.schema))

    def test_amend_after_prepare(self) -> None:
        validator = QueryValidator()
        validator.prepare_schema(self.schema)
        with self.assertRaises(PolicyFrozenError):
            validator.amend_filter_arg_lists(whitelisted={"orderby"})

    def test_prepare_schema_is_idempotent(self) -> None:
        calls = []
        validator = QueryValidator()
        validator.add_schema_ready_hook(lambda: calls.append(True))

        validator.prepare_schema(self.schema)
        validator.prepare_schema(self.schema)
        validator.validate_query(self.schema, "{ posts { id } }")

        self.assertEqual([True], calls)
        self.assertEqual(
            validator.policy.compute_field_cost,
            validator.registry.get_registered_evaluator("RootQuery", "posts"),
        )

    def test_prepared_schemas_are_not_kept_alive(self) -> None:
        validator = QueryValidator()
        for _ in range(3):
            schema = get_schema()
            validator.prepare_schema(schema)
            self.assertTrue(validator.is_prepared(schema))
        del schema
        gc.collect()

        self.assertEqual(0, len(validator._prepared_schemas))
        self.assertFalse(validator.is_prepared(get_schema()))

    def test_restrict_schema(self) -> None:
        validator = QueryValidator(
            ValidatorConfig(allowed_root_queries=frozenset({"post", "posts"}))
        )
        schema = build_ast_schema(validator.restrict_schema(parse(SCHEMA_TEXT)))

        self.assertIsNone(schema.mutation_type)
        self.assertEqual({"post", "posts"}, set(schema.query_type.fields))

        errors = validator.validate_query(schema, "{ plugins }")
        self.assertEqual(1, len(errors))
        self.assertEqual([], validator.validate_query(schema, "{ posts { id } }"))

    def test_restrict_schema_keeping_mutations(self) -> None:
        validator = QueryValidator(ValidatorConfig(disable_mutations=False))
        schema = build_ast_schema(validator.restrict_schema(parse(SCHEMA_TEXT)))

        self.assertIsNotNone(schema.mutation_type)
        self.assertEqual(
            {"plugins", "post", "posts", "user", "users"}, set(schema.query_type.fields)
        )
