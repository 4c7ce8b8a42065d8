# Copyright 2017-present Kensho Technologies, LLC.
"""Validation rules limiting query depth and query cost, run before any query executes.

Query depth counts nested fields that have selection sets: a root field with a selection set is
at depth 0, and each nested field with a selection set adds one. Fragments add no depth.

Query cost is computed bottom-up: each field's cost is produced by the evaluator registered for
it in a FieldCostRegistry, given the total cost of its children and its arguments. The cost of
an operation is the sum of the costs of its root fields. Field arguments are coerced the way
execution coerces them, so variable defaults and schema argument defaults are costed too.

Each fragment is walked at most once per operation (per parent type, for cost), and the cost walk
stops once the running total exceeds the max cost.
"""
import logging
from typing import Any, Dict, Optional, Set, Tuple, Type, Union

from graphql import GraphQLError, GraphQLSchema
from graphql.execution.values import (
    get_argument_values,
    get_directive_values,
    get_variable_values,
)
from graphql.language import (
    SKIP,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    InlineFragmentNode,
    OperationDefinitionNode,
    OperationType,
    SelectionSetNode,
)
from graphql.pyutils import Undefined
from graphql.type import (
    GraphQLField,
    GraphQLIncludeDirective,
    GraphQLInterfaceType,
    GraphQLNamedType,
    GraphQLObjectType,
    GraphQLSkipDirective,
    SchemaMetaFieldDef,
    TypeMetaFieldDef,
    TypeNameMetaFieldDef,
    get_named_type,
)
from graphql.utilities import value_from_ast_untyped
from graphql.validation import ASTValidationRule, ValidationContext

from .config import validate_limit
from .extension_points import FieldCostRegistry


logger = logging.getLogger(__name__)

QUERY_TOO_DEEP = "QUERY_TOO_DEEP"
QUERY_TOO_COMPLEX = "QUERY_TOO_COMPLEX"


def _get_selection_set(node: Any) -> Optional[SelectionSetNode]:
    """Return the selection set of a node, or None if it has none."""
    return getattr(node, "selection_set", None)


def _get_operation_root_type(
    schema: GraphQLSchema, operation: OperationDefinitionNode
) -> Optional[GraphQLObjectType]:
    """Return the root type for the operation, or None if the schema does not support it."""
    if operation.operation == OperationType.QUERY:
        return schema.query_type
    elif operation.operation == OperationType.MUTATION:
        return schema.mutation_type
    elif operation.operation == OperationType.SUBSCRIPTION:
        return schema.subscription_type
    else:
        raise AssertionError(
            "Unreachable code reached: unexpected operation type {}".format(operation.operation)
        )


def _get_field_definition(
    schema: GraphQLSchema, parent_type: Optional[GraphQLNamedType], field_name: str
) -> Optional[GraphQLField]:
    """Return the definition of the field on the parent type, including meta fields."""
    if field_name == "__typename":
        return TypeNameMetaFieldDef
    if parent_type is None:
        return None
    if parent_type is schema.query_type:
        if field_name == "__schema":
            return SchemaMetaFieldDef
        if field_name == "__type":
            return TypeMetaFieldDef
    if isinstance(parent_type, (GraphQLObjectType, GraphQLInterfaceType)):
        return parent_type.fields.get(field_name)
    return None


def _is_included(
    node: Union[FieldNode, FragmentSpreadNode, InlineFragmentNode],
    variable_values: Dict[str, Any],
) -> bool:
    """Return False if the node is excluded by a @skip or @include directive."""
    try:
        skip = get_directive_values(GraphQLSkipDirective, node, variable_values)
        if skip and skip.get("if") is True:
            return False
        include = get_directive_values(GraphQLIncludeDirective, node, variable_values)
        if include and include.get("if") is False:
            return False
    except GraphQLError:
        # A directive whose condition cannot be resolved is counted as included.
        return True
    return True


def get_field_arguments(
    node: FieldNode,
    variable_values: Dict[str, Any],
    field_definition: Optional[GraphQLField] = None,
) -> Dict[str, Any]:
    """Return the arguments of the field, with variables resolved to their values.

    When the field definition is given, arguments are coerced the way execution will coerce them,
    so schema default values are included. If that fails, e.g. because an argument value is
    invalid, only the arguments written in the query are returned, and variables without a
    value resolve to None.
    """
    if field_definition is not None:
        try:
            return get_argument_values(field_definition, node, variable_values)
        except GraphQLError:
            # Invalid arguments are reported by the specified rules, but are still classified.
            pass

    args = {}
    for argument in node.arguments or ():
        value = value_from_ast_untyped(argument.value, variable_values)
        args[argument.name.value] = None if value is Undefined else value
    return args


def coerce_operation_variables(
    schema: GraphQLSchema,
    operation: OperationDefinitionNode,
    variable_values: Dict[str, Any],
) -> Dict[str, Any]:
    """Return the operation's variable values coerced as execution would, including defaults.

    If the provided values cannot be coerced, they are returned unchanged.
    """
    coerced = get_variable_values(schema, operation.variable_definitions or [], variable_values)
    if isinstance(coerced, dict):
        return coerced
    logger.debug(
        "Could not coerce variables of operation %s: %s",
        operation.name.value if operation.name else "<anonymous>",
        [error.message for error in coerced],
    )
    return variable_values


class _SelectionWalker:
    """Shared fragment resolution for the depth and cost walks."""

    def __init__(self, context: ValidationContext) -> None:
        self.context = context
        # Fragments on the current walk path, to guard against fragment cycles.
        self._fragments_in_path: Set[str] = set()

    def _enter_fragment(self, node: FragmentSpreadNode) -> Optional[FragmentDefinitionNode]:
        """Return the fragment definition to walk into, or None if it must be skipped."""
        fragment_name = node.name.value
        if fragment_name in self._fragments_in_path:
            # Fragment cycles are reported by NoFragmentCyclesRule.
            return None
        fragment = self.context.get_fragment(fragment_name)
        if fragment is None:
            # Unknown fragments are reported by KnownFragmentNamesRule.
            return None
        self._fragments_in_path.add(fragment_name)
        return fragment

    def _leave_fragment(self, node: FragmentSpreadNode) -> None:
        self._fragments_in_path.discard(node.name.value)


class _DepthWalker(_SelectionWalker):
    def __init__(self, context: ValidationContext) -> None:
        super().__init__(context)
        # Fragment name -> max depth inside the fragment, relative to where it is spread.
        # None if the fragment has no fields with selection sets.
        self._fragment_depths: Dict[str, Optional[int]] = {}

    def get_max_depth(self, node: Any, depth: int = 0, max_depth: int = 0) -> int:
        """Return the max depth of fields with selection sets under the node's selection set."""
        selection_set = _get_selection_set(node)
        if selection_set is None:
            return max_depth

        for selection in selection_set.selections:
            if isinstance(selection, FieldNode):
                if selection.selection_set is not None:
                    max_depth = max(max_depth, depth)
                    max_depth = self.get_max_depth(selection, depth + 1, max_depth)
            elif isinstance(selection, InlineFragmentNode):
                max_depth = self.get_max_depth(selection, depth, max_depth)
            elif isinstance(selection, FragmentSpreadNode):
                fragment_depth = self._get_fragment_depth(selection)
                if fragment_depth is not None:
                    max_depth = max(max_depth, depth + fragment_depth)
            else:
                raise AssertionError(
                    "Unreachable code reached: unexpected selection {}".format(selection)
                )
        return max_depth

    def _get_fragment_depth(self, node: FragmentSpreadNode) -> Optional[int]:
        """Return the max depth inside the spread fragment, walking each fragment only once."""
        fragment_name = node.name.value
        if fragment_name in self._fragment_depths:
            return self._fragment_depths[fragment_name]

        fragment = self._enter_fragment(node)
        if fragment is None:
            return None
        try:
            relative_depth = self.get_max_depth(fragment, 0, -1)
        finally:
            self._leave_fragment(node)

        fragment_depth = relative_depth if relative_depth >= 0 else None
        self._fragment_depths[fragment_name] = fragment_depth
        return fragment_depth


class _CostWalker(_SelectionWalker):
    def __init__(
        self,
        context: ValidationContext,
        registry: FieldCostRegistry,
        variable_values: Dict[str, Any],
        max_cost: int,
    ) -> None:
        super().__init__(context)
        self.schema = context.schema
        self.registry = registry
        self.variable_values = variable_values
        self.max_cost = max_cost
        # (fragment name, parent type name) -> cost of the fragment's selections.
        self._fragment_costs: Dict[Tuple[str, Optional[str]], int] = {}

    def get_selection_set_cost(
        self, node: Any, parent_type: Optional[GraphQLNamedType], cost: int = 0
    ) -> int:
        """Add the cost of every selection in the node's selection set to the given cost.

        Stops adding once the cost exceeds max_cost, so the result is then a lower bound.
        """
        selection_set = _get_selection_set(node)
        if selection_set is None:
            return cost

        for selection in selection_set.selections:
            if cost > self.max_cost:
                break
            if not _is_included(selection, self.variable_values):
                continue
            if isinstance(selection, FieldNode):
                cost += self.get_field_cost(selection, parent_type)
            elif isinstance(selection, InlineFragmentNode):
                cost = self.get_selection_set_cost(
                    selection, self._get_type_condition(selection, parent_type), cost
                )
            elif isinstance(selection, FragmentSpreadNode):
                cost += self._get_fragment_cost(selection, parent_type)
            else:
                raise AssertionError(
                    "Unreachable code reached: unexpected selection {}".format(selection)
                )
        return cost

    def _get_fragment_cost(
        self, node: FragmentSpreadNode, parent_type: Optional[GraphQLNamedType]
    ) -> int:
        """Return the cost of the spread fragment, walking each fragment only once per type."""
        cache_key = (node.name.value, parent_type.name if parent_type is not None else None)
        if cache_key in self._fragment_costs:
            return self._fragment_costs[cache_key]

        fragment = self._enter_fragment(node)
        if fragment is None:
            return 0
        try:
            fragment_cost = self.get_selection_set_cost(
                fragment, self._get_type_condition(fragment, parent_type)
            )
        finally:
            self._leave_fragment(node)

        self._fragment_costs[cache_key] = fragment_cost
        return fragment_cost

    def get_field_cost(self, node: FieldNode, parent_type: Optional[GraphQLNamedType]) -> int:
        """Return the cost of the field, computed from its children's cost and its arguments."""
        field_name = node.name.value
        field_definition = _get_field_definition(self.schema, parent_type, field_name)
        if field_definition is None or parent_type is None:
            # Unknown fields are reported by FieldsOnCorrectTypeRule.
            return 0

        field_type = get_named_type(field_definition.type)
        children_cost = self.get_selection_set_cost(node, field_type)
        evaluator = self.registry.get_evaluator(parent_type.name, field_name)
        args = get_field_arguments(node, self.variable_values, field_definition)
        return evaluator(children_cost, args)

    def _get_type_condition(
        self, node: Any, parent_type: Optional[GraphQLNamedType]
    ) -> Optional[GraphQLNamedType]:
        """Return the type a fragment applies to, defaulting to the enclosing type."""
        type_condition = getattr(node, "type_condition", None)
        if type_condition is None:
            return parent_type
        return self.schema.get_type(type_condition.name.value)


def create_query_depth_rule(max_depth: int) -> Type[ASTValidationRule]:
    """Return a validation rule rejecting operations nested deeper than max_depth."""
    validate_limit("max_depth", max_depth)

    class QueryDepthRule(ASTValidationRule):
        """Limit the nesting depth of each operation."""

        def enter_operation_definition(
            self, node: OperationDefinitionNode, *_args: Any
        ) -> Any:
            depth = _DepthWalker(self.context).get_max_depth(node)
            if depth > max_depth:
                logger.warning(
                    "Rejecting operation %s: depth %d exceeds the max depth %d.",
                    node.name.value if node.name else "<anonymous>",
                    depth,
                    max_depth,
                )
                self.report_error(
                    GraphQLError(
                        "Max query depth should be {} but got {}.".format(max_depth, depth),
                        [node],
                        extensions={
                            "code": QUERY_TOO_DEEP,
                            "max_depth": max_depth,
                            "depth": depth,
                        },
                    )
                )
            return SKIP

    return QueryDepthRule


def create_query_complexity_rule(
    max_cost: int,
    registry: FieldCostRegistry,
    variable_values: Optional[Dict[str, Any]] = None,
) -> Type[ASTValidationRule]:
    """Return a validation rule rejecting operations whose total cost exceeds max_cost.

    Args:
        max_cost: total cost ceiling for each operation
        registry: cost evaluators for fields, keyed by parent type and field name
        variable_values: values of the query's variables, used to resolve field arguments and
                         @skip/@include conditions

    Returns:
        ASTValidationRule subclass, to be passed to graphql-core's validate()
    """
    validate_limit("max_cost", max_cost)
    resolved_variable_values = dict(variable_values or {})

    class QueryComplexityRule(ASTValidationRule):
        """Limit the total cost of each operation."""

        def enter_operation_definition(
            self, node: OperationDefinitionNode, *_args: Any
        ) -> Any:
            schema = self.context.schema
            coerced_variable_values = coerce_operation_variables(
                schema, node, resolved_variable_values
            )
            walker = _CostWalker(self.context, registry, coerced_variable_values, max_cost)
            root_type = _get_operation_root_type(schema, node)
            cost = walker.get_selection_set_cost(node, root_type)
            if cost > max_cost:
                logger.warning(
                    "Rejecting operation %s: cost %d exceeds the max cost %d.",
                    node.name.value if node.name else "<anonymous>",
                    cost,
                    max_cost,
                )
                self.report_error(
                    GraphQLError(
                        "Max query complexity should be {} but got {}.".format(max_cost, cost),
                        [node],
                        extensions={
                            "code": QUERY_TOO_COMPLEX,
                            "max_cost": max_cost,
                            "cost": cost,
                        },
                    )
                )
            return SKIP

    return QueryComplexityRule
