# Copyright 2017-present Kensho Technologies, LLC.
import unittest

from ..config import ValidatorConfig
from ..exceptions import InvalidPolicyConfigurationError


class ValidatorConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = ValidatorConfig()
        self.assertEqual(1000, config.max_cost)
        self.assertEqual(11, config.max_depth)
        self.assertEqual(
            frozenset({"location", "name", "orderby", "search", "slug", "tagSlugIn"}),
            config.restricted_where_args,
        )
        self.assertEqual(frozenset(), config.whitelisted_where_args)
        self.assertTrue(config.disable_mutations)
        self.assertIsNone(config.allowed_root_queries)

    def test_name_collections_are_normalized(self) -> None:
        config = ValidatorConfig(
            restricted_where_args=["name", "name"],  # type: ignore[arg-type]
            allowed_root_queries=("post", "posts"),  # type: ignore[arg-type]
        )
        self.assertEqual(frozenset({"name"}), config.restricted_where_args)
        self.assertEqual(frozenset({"post", "posts"}), config.allowed_root_queries)

    def test_invalid_values(self) -> None:
        with self.assertRaises(InvalidPolicyConfigurationError):
            ValidatorConfig(max_cost=-1)
        with self.assertRaises(InvalidPolicyConfigurationError):
            ValidatorConfig(max_depth="11")  # type: ignore[arg-type]
        with self.assertRaises(InvalidPolicyConfigurationError):
            ValidatorConfig(whitelisted_where_args="orderby")  # type: ignore[arg-type]
        with self.assertRaises(InvalidPolicyConfigurationError):
            ValidatorConfig(restricted_where_args=None)  # type: ignore[arg-type]

    def test_from_mapping(self) -> None:
        config = ValidatorConfig.from_mapping(
            {
                "max_cost": 500,
                "whitelisted_where_args": ["orderby"],
                "allowed_root_queries": ["post", "posts"],
            }
        )
        self.assertEqual(500, config.max_cost)
        self.assertEqual(11, config.max_depth)
        self.assertEqual(frozenset({"orderby"}), config.whitelisted_where_args)
        self.assertEqual(frozenset({"post", "posts"}), config.allowed_root_queries)

    def test_from_mapping_with_unknown_keys(self) -> None:
        with self.assertRaises(InvalidPolicyConfigurationError):
            ValidatorConfig.from_mapping({"max_cost": 500, "maxCost": 500})
