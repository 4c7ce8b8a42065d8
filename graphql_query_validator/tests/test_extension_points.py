# Copyright 2017-present Kensho Technologies, LLC.
import unittest

from ..extension_points import FieldCostRegistry, SchemaReadyHooks, default_field_cost
from .test_helpers import get_schema


class FieldCostRegistryTests(unittest.TestCase):
    def test_default_evaluator(self) -> None:
        registry = FieldCostRegistry()
        evaluator = registry.get_evaluator("RootQuery", "posts")
        self.assertIs(default_field_cost, evaluator)
        self.assertEqual(1, evaluator(0, {}))
        self.assertEqual(6, evaluator(5, {"first": 100}))
        self.assertIsNone(registry.get_registered_evaluator("RootQuery", "posts"))

    def test_register(self) -> None:
        registry = FieldCostRegistry()

        def free_field(children_cost, args):
            return children_cost

        registry.register("User", "posts", free_field)
        self.assertIs(free_field, registry.get_evaluator("User", "posts"))
        self.assertIs(default_field_cost, registry.get_evaluator("Post", "posts"))

    def test_register_root_query_fields(self) -> None:
        registry = FieldCostRegistry()

        def free_field(children_cost, args):
            return children_cost

        registered_fields = registry.register_root_query_fields(get_schema(), free_field)

        self.assertEqual(["plugins", "post", "posts", "user", "users"], registered_fields)
        for field_name in registered_fields:
            self.assertIs(free_field, registry.get_evaluator("RootQuery", field_name))
        # Nested fields keep the default evaluator.
        self.assertIs(default_field_cost, registry.get_evaluator("User", "posts"))


class SchemaReadyHooksTests(unittest.TestCase):
    def test_hooks_run_once_in_order(self) -> None:
        calls = []
        hooks = SchemaReadyHooks()
        hooks.add(lambda: calls.append("first"))
        hooks.add(lambda: calls.append("second"))
        self.assertFalse(hooks.has_run)

        hooks.run()
        hooks.run()

        self.assertTrue(hooks.has_run)
        self.assertEqual(["first", "second"], calls)

    def test_add_after_run(self) -> None:
        hooks = SchemaReadyHooks()
        hooks.run()
        with self.assertRaises(AssertionError):
            hooks.add(lambda: None)
