"""
Condition-Tree Rule Evaluator

Single-pass rule matching: given named facts and a rule list, return the
events of every rule whose condition tree holds. Stateless between calls;
the inference engine decides what to do with the events.

Condition leaves use the json-rules-engine vocabulary:
    {fact: "derived", path: "$.allSkills", operator: "contains", value: "skill_x"}
"""

import logging
import numbers
import operator as op
from typing import Any, Optional, Protocol, Sequence

from ..config_loader import InferenceRule, RuleCondition, RuleEvent

logger = logging.getLogger(__name__)


def _contains(fact_value, rule_value) -> bool:
    return isinstance(fact_value, list) and rule_value in fact_value


def _in(fact_value, rule_value) -> bool:
    return isinstance(rule_value, list) and fact_value in rule_value


def _numeric(compare):
    def _check(fact_value, rule_value) -> bool:
        if isinstance(fact_value, bool) or isinstance(rule_value, bool):
            return False
        if not (isinstance(fact_value, numbers.Number) and isinstance(rule_value, numbers.Number)):
            return False
        return compare(fact_value, rule_value)
    return _check


# Operator map for leaf comparison: (fact value, rule value) -> bool
_OPERATORS = {
    "equal": op.eq,
    "notEqual": op.ne,
    "in": _in,
    "notIn": lambda f, r: isinstance(r, list) and f not in r,
    "contains": _contains,
    "doesNotContain": lambda f, r: isinstance(f, list) and r not in f,
    "lessThan": _numeric(op.lt),
    "lessThanInclusive": _numeric(op.le),
    "greaterThan": _numeric(op.gt),
    "greaterThanInclusive": _numeric(op.ge),
}


def resolve_path(fact_value: Any, path: Optional[str]) -> Any:
    """Walk a `$.a.b` path into nested dicts. Missing segments give None."""
    if path is None or path == "$":
        return fact_value
    if not path.startswith("$."):
        return None
    current = fact_value
    for segment in path[2:].split("."):
        if not isinstance(current, dict) or segment not in current:
            return None
        current = current[segment]
    return current


class FactEvaluator(Protocol):
    """Rule-matching collaborator used by the inference engine."""

    def evaluate(self, facts: dict, rules: Sequence[InferenceRule]) -> list[RuleEvent]:
        ...


class ConditionTreeEvaluator:
    """Evaluates all/any condition trees against a fact dictionary.

    Rules run in descending priority (ties keep catalogue order), so the
    returned events are in a deterministic order.
    """

    def evaluate(self, facts: dict, rules: Sequence[InferenceRule]) -> list[RuleEvent]:
        ordered = sorted(enumerate(rules), key=lambda pair: (-pair[1].priority, pair[0]))
        events = []
        for _, rule in ordered:
            if self.matches(rule.conditions, facts):
                events.append(rule.event)
        logger.debug(f"[RuleEvaluator] {len(events)} of {len(rules)} rules fired")
        return events

    def matches(self, condition: RuleCondition, facts: dict) -> bool:
        if not condition.is_group:
            return self._evaluate_leaf(condition, facts)

        if condition.all is not None:
            if not all(self.matches(child, facts) for child in condition.all):
                return False
        if condition.any is not None:
            if not any(self.matches(child, facts) for child in condition.any):
                return False
        return True

    def _evaluate_leaf(self, leaf: RuleCondition, facts: dict) -> bool:
        comparator = _OPERATORS.get(leaf.operator)
        if comparator is None:
            logger.warning(f"[RuleEvaluator] Unknown operator '{leaf.operator}' in condition")
            return False
        if leaf.fact is None:
            return False

        fact_value = resolve_path(facts.get(leaf.fact), leaf.path)
        try:
            return bool(comparator(fact_value, leaf.value))
        except TypeError:
            # Unhashable/incomparable operands never match.
            return False
