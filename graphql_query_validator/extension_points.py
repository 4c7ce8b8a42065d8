# Copyright 2017-present Kensho Technologies, LLC.
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from graphql import GraphQLSchema


logger = logging.getLogger(__name__)

# Called once per field with (children_cost, args), after the children's cost is known.
FieldCostEvaluator = Callable[[int, Dict[str, Any]], int]

# Called once, with no arguments, when the schema is ready and before any query is served.
SchemaReadyHook = Callable[[], None]


def default_field_cost(children_cost: int, args: Dict[str, Any]) -> int:
    """Return the cost of a field with no registered evaluator: one, plus its children."""
    return children_cost + 1


class FieldCostRegistry:
    """Cost evaluators registered per (parent type name, field name)."""

    def __init__(self, default_evaluator: FieldCostEvaluator = default_field_cost) -> None:
        """Create a registry where unregistered fields use the given default evaluator."""
        self.default_evaluator = default_evaluator
        self._evaluators: Dict[Tuple[str, str], FieldCostEvaluator] = {}

    def register(self, type_name: str, field_name: str, evaluator: FieldCostEvaluator) -> None:
        """Register the cost evaluator for the given field, replacing any previous one."""
        self._evaluators[(type_name, field_name)] = evaluator

    def register_root_query_fields(
        self, schema: GraphQLSchema, evaluator: FieldCostEvaluator
    ) -> List[str]:
        """Register the evaluator for every field of the schema's query type.

        Returns:
            names of the query root fields that the evaluator was registered for, sorted
        """
        query_type = schema.query_type
        if query_type is None:
            raise AssertionError("Expected the schema to have a query type, but it had none.")

        field_names = sorted(query_type.fields)
        for field_name in field_names:
            self.register(query_type.name, field_name, evaluator)

        logger.info(
            "Registered cost evaluator for %d root query field(s) of type %s.",
            len(field_names),
            query_type.name,
        )
        return field_names

    def get_registered_evaluator(
        self, type_name: str, field_name: str
    ) -> Optional[FieldCostEvaluator]:
        """Return the evaluator registered for the field, or None if there is none."""
        return self._evaluators.get((type_name, field_name))

    def get_evaluator(self, type_name: str, field_name: str) -> FieldCostEvaluator:
        """Return the evaluator for the field, falling back to the default evaluator."""
        evaluator = self.get_registered_evaluator(type_name, field_name)
        if evaluator is None:
            return self.default_evaluator
        return evaluator


class SchemaReadyHooks:
    """Configuration amenders run exactly once, when the schema is ready."""

    def __init__(self) -> None:
        """Create an empty, not yet run, list of hooks."""
        self._hooks: List[SchemaReadyHook] = []
        self._has_run = False

    @property
    def has_run(self) -> bool:
        """Return True if the hooks have already been run."""
        return self._has_run

    def add(self, hook: SchemaReadyHook) -> None:
        """Add a hook to run when the schema is ready, after all previously added hooks."""
        if self._has_run:
            raise AssertionError(
                "Cannot add schema-ready hook {} after the hooks have already run.".format(hook)
            )
        self._hooks.append(hook)

    def run(self) -> None:
        """Run every hook in the order they were added. Later calls do nothing."""
        if self._has_run:
            return
        # Marked first, so a hook that fails is not re-run by a later call.
        self._has_run = True
        for hook in self._hooks:
            hook()
