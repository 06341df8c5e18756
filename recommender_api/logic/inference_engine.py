"""
Forward-Chaining Inference Engine

Expands a search filter request with implicit constraints by applying the
inference rule catalogue until fixpoint:

1. BUILD CONTEXT: Convert the request into the initial inference context
2. EVALUATE: Run every rule against the current context
3. DERIVE: Turn each newly fired rule into a DerivedConstraint
   (derivation chains + override resolution)
4. MERGE: Fold non-overridden constraints into a new context
5. Repeat until the skill set stops changing or the iteration cap is hit

Every iteration re-evaluates all rules against the full context, so
convergence assumes rules only ever add derived facts.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..config_loader import InferenceRule, KnowledgeBaseConfig, get_knowledge_base
from ..models import SearchFilterRequest
from .constraints import DerivedConstraint, event_to_derived_constraint, merge_derived_values_into_context
from .context import InferenceContext, compute_context_hash, create_inference_context
from .overrides import to_string_list
from .rule_evaluator import ConditionTreeEvaluator, FactEvaluator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverriddenRuleInfo:
    rule_id: str
    override_scope: str
    overridden_skills: list[str]
    reason_type: str

    def to_dict(self) -> dict:
        return {
            "ruleId": self.rule_id,
            "overrideScope": self.override_scope,
            "overriddenSkills": list(self.overridden_skills),
            "reasonType": self.reason_type,
        }


@dataclass
class InferenceResult:
    """Everything one inference run produced."""
    derived_constraints: list[DerivedConstraint] = field(default_factory=list)
    fired_rules: list[str] = field(default_factory=list)
    overridden_rules: list[OverriddenRuleInfo] = field(default_factory=list)
    iteration_count: int = 0     # passes that changed the skill set
    evaluation_count: int = 0    # rule evaluator calls
    converged: bool = False
    warnings: list[str] = field(default_factory=list)
    context: Optional[InferenceContext] = None

    # Convenience projections of derived_constraints
    derived_required_skill_ids: list[str] = field(default_factory=list)
    derived_skill_boosts: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "derivedConstraints": [c.to_dict() for c in self.derived_constraints],
            "firedRules": list(self.fired_rules),
            "overriddenRules": [o.to_dict() for o in self.overridden_rules],
            "iterationCount": self.iteration_count,
            "evaluationCount": self.evaluation_count,
            "converged": self.converged,
            "warnings": list(self.warnings),
            "derivedRequiredSkillIds": list(self.derived_required_skill_ids),
            "derivedSkillBoosts": dict(self.derived_skill_boosts),
            "context": self.context.to_dict() if self.context is not None else None,
        }


def get_derived_required_skills(constraints: Sequence[DerivedConstraint]) -> list[str]:
    """Skills that must be matched: effective filter rules on derivedSkills."""
    skills = []
    for constraint in constraints:
        if not constraint.is_effective_skill_filter:
            continue
        for skill in to_string_list(constraint.action.target_value):
            if skill not in skills:
                skills.append(skill)
    return skills


def aggregate_derived_skill_boosts(constraints: Sequence[DerivedConstraint]) -> dict[str, float]:
    """Skill -> boost strength from effective boost rules (max strength wins)."""
    boosts: dict[str, float] = {}
    for constraint in constraints:
        if not constraint.is_effective_skill_boost:
            continue
        strength = constraint.action.boost_strength
        if strength is None:
            continue
        for skill in to_string_list(constraint.action.target_value):
            boosts[skill] = max(boosts.get(skill, 0.0), strength)
    return boosts


class InferenceEngine:
    """
    Runs the inference rule catalogue to fixpoint for one request at a time.

    The rule list and evaluator are read-only and may be shared; every call to
    run() owns its own context and bookkeeping.
    """

    def __init__(
        self,
        rules: Sequence[InferenceRule],
        evaluator: Optional[FactEvaluator] = None,
        max_iterations: int = 10,
    ):
        """
        Args:
            rules: Inference rule catalogue
            evaluator: Rule-matching collaborator. Defaults to ConditionTreeEvaluator.
            max_iterations: Cap on evaluation passes
        """
        self.rules = list(rules)
        self.evaluator = evaluator or ConditionTreeEvaluator()
        self.max_iterations = max_iterations

    @classmethod
    def from_knowledge_base(
        cls,
        config: Optional[KnowledgeBaseConfig] = None,
        evaluator: Optional[FactEvaluator] = None,
    ) -> "InferenceEngine":
        config = config or get_knowledge_base()
        return cls(config.inference_rules, evaluator, config.max_inference_iterations)

    def run(self, request: Optional[SearchFilterRequest] = None) -> InferenceResult:
        """Expand a request into derived constraints."""
        return self.run_from_context(create_inference_context(request))

    def run_from_context(self, context: InferenceContext) -> InferenceResult:
        result = InferenceResult()
        fired: set[str] = set()
        merged: set[str] = set()
        current_hash = compute_context_hash(context)

        while result.evaluation_count < self.max_iterations:
            result.evaluation_count += 1
            events = self.evaluator.evaluate(context.to_facts(), self.rules)

            for event in events:
                rule_id = event.params.rule_id
                if rule_id in fired:
                    continue
                fired.add(rule_id)

                constraint = event_to_derived_constraint(event, self.rules, context)
                result.fired_rules.append(rule_id)
                result.derived_constraints.append(constraint)

                if constraint.override is not None:
                    result.overridden_rules.append(OverriddenRuleInfo(
                        rule_id=rule_id,
                        override_scope=constraint.override.override_scope.value,
                        overridden_skills=list(constraint.override.overridden_skills),
                        reason_type=constraint.override.reason_type.value,
                    ))
                    logger.info(
                        f"[Inference] Rule '{rule_id}' overridden "
                        f"({constraint.override.override_scope.value}, {constraint.override.reason_type.value})"
                    )

            context = merge_derived_values_into_context(context, result.derived_constraints, merged)
            next_hash = compute_context_hash(context)
            if next_hash == current_hash:
                result.converged = True
                break
            current_hash = next_hash
            result.iteration_count += 1
            logger.debug(
                f"[Inference] Pass {result.evaluation_count}: "
                f"{len(context.derived.all_skills)} skills after {len(fired)} fired rules"
            )

        if not result.converged:
            message = f"Reached maximum inference iterations ({self.max_iterations})."
            result.warnings.append(message)
            logger.warning(f"[Inference] {message} Returning partial inference.")

        result.context = context
        result.derived_required_skill_ids = get_derived_required_skills(result.derived_constraints)
        result.derived_skill_boosts = aggregate_derived_skill_boosts(result.derived_constraints)

        logger.info(
            f"[Inference] {len(result.fired_rules)} rules fired, "
            f"{len(result.overridden_rules)} overridden, "
            f"{result.evaluation_count} passes (converged={result.converged})"
        )
        return result


def run_inference(
    request: Optional[SearchFilterRequest] = None,
    config: Optional[KnowledgeBaseConfig] = None,
) -> InferenceResult:
    """Run inference against the configured knowledge base."""
    return InferenceEngine.from_knowledge_base(config).run(request)
