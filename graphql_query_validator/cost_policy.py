# Copyright 2017-present Kensho Technologies, LLC.
"""Field cost aggregation for query admission control.

Our approach to field arguments is simple: if every argument is approved it carries a cost of
zero, and the field passes its children's cost through unchanged. Otherwise the field carries a
prohibitive cost (max cost * 100), which guarantees the query total exceeds the limit regardless
of sibling or child costs.
"""
import logging
from typing import Any, Iterable, Mapping, Optional

from .argument_costs import ArgumentCostRules, FilterArgLists
from .config import DEFAULT_MAX_COST, DEFAULT_MAX_DEPTH, ValidatorConfig, validate_limit
from .exceptions import PolicyFrozenError


logger = logging.getLogger(__name__)

DISQUALIFYING_COST_MULTIPLIER = 100


class CostPolicy:
    """Thresholds and argument rules used to compute the cost of each queried field.

    A policy is configured (constructed, then optionally amended) before any query is evaluated.
    After freeze() it is read-only, and compute_field_cost() may be called concurrently.
    """

    def __init__(
        self,
        max_cost: int = DEFAULT_MAX_COST,
        max_depth: int = DEFAULT_MAX_DEPTH,
        filter_arg_lists: Optional[FilterArgLists] = None,
        id_argument_names: Optional[Iterable[str]] = None,
    ) -> None:
        """Create a new CostPolicy.

        Args:
            max_cost: total cost ceiling across an entire query
            max_depth: maximum field nesting depth. Not enforced here, it is handed to the
                       depth validation rule.
            filter_arg_lists: restricted and whitelisted "where" sub-argument names. Uses the
                              default lists if None.
            id_argument_names: argument names that look resources up by ID. Uses the default
                               names if None.
        """
        validate_limit("max_cost", max_cost)
        validate_limit("max_depth", max_depth)
        self.max_cost = max_cost
        self.max_depth = max_depth

        rules_kwargs: dict = {}
        if filter_arg_lists is not None:
            rules_kwargs["filter_arg_lists"] = filter_arg_lists
        if id_argument_names is not None:
            rules_kwargs["id_argument_names"] = frozenset(id_argument_names)
        self._rules = ArgumentCostRules(**rules_kwargs)
        self._frozen = False

    @classmethod
    def from_config(cls, config: ValidatorConfig) -> "CostPolicy":
        """Create a CostPolicy from the thresholds and argument lists in the config."""
        return cls(
            max_cost=config.max_cost,
            max_depth=config.max_depth,
            filter_arg_lists=FilterArgLists(
                restricted=config.restricted_where_args,
                whitelisted=config.whitelisted_where_args,
            ),
            id_argument_names=config.id_argument_names,
        )

    @property
    def rules(self) -> ArgumentCostRules:
        """Return the argument cost rules currently in effect."""
        return self._rules

    @property
    def disqualifying_cost(self) -> int:
        """Return the cost assigned to a field with any disqualifying argument."""
        return self.max_cost * DISQUALIFYING_COST_MULTIPLIER

    @property
    def is_frozen(self) -> bool:
        """Return True if the policy has finished configuration and is serving queries."""
        return self._frozen

    def freeze(self) -> None:
        """End the configuration phase. Amending the policy afterward raises PolicyFrozenError."""
        if not self._frozen:
            logger.info(
                "Freezing cost policy: max_cost=%d, max_depth=%d, restricted where args=%s, "
                "whitelisted where args=%s.",
                self.max_cost,
                self.max_depth,
                sorted(self._rules.filter_arg_lists.restricted),
                sorted(self._rules.filter_arg_lists.whitelisted),
            )
        self._frozen = True

    def amend_filter_arg_lists(
        self,
        restricted: Optional[Iterable[str]] = None,
        whitelisted: Optional[Iterable[str]] = None,
    ) -> None:
        """Override the restricted and/or whitelisted "where" argument lists.

        Meant to run once while the schema and config are being finalized. Calling it again
        before freeze() is safe, and the last write wins. A None list is left unchanged.

        Raises:
            PolicyFrozenError if the policy has already been frozen
        """
        if self._frozen:
            raise PolicyFrozenError(
                "Cannot amend the filter argument lists of a cost policy that is already "
                "serving queries."
            )
        # The rule set is replaced as a whole, never mutated in place.
        self._rules = self._rules.with_filter_arg_lists(restricted, whitelisted)

    def compute_field_cost(self, children_cost: int, args: Mapping[str, Any]) -> int:
        """Compute the cost of a field from its children's cost and its arguments.

        Args:
            children_cost: already computed total cost of the field's children
            args: the field's arguments, argument name -> value

        Returns:
            children_cost if every argument is free, otherwise the disqualifying cost
        """
        rules = self._rules
        for name, value in args.items():
            if rules.cost_of_argument(name, value) > 0:
                logger.debug("Argument %r carries a disqualifying cost.", name)
                return self.disqualifying_cost

        return children_cost
