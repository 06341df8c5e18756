"""Derived constraints and how they fold back into the inference context."""

from dataclasses import dataclass, field, replace
from typing import Any, Optional, Sequence

from ..config_loader import InferenceRule, RuleEffect, RuleEvent, find_rule
from .context import Chain, InferenceContext, ProvenanceMap, normalize_property_key
from .overrides import DERIVED_SKILLS, ConstraintOverride, OverrideScope, determine_override_status
from .provenance import build_derivation_chains, deduplicate_chains


@dataclass(frozen=True)
class ConstraintAction:
    """What the constraint does to the search."""
    effect: RuleEffect
    target_field: str
    target_value: Any  # str | list[str] | number
    boost_strength: Optional[float] = None  # boost effect only


@dataclass(frozen=True)
class DerivedConstraint:
    """A constraint produced by a fired rule, with its audit trail."""
    rule_id: str
    rule_name: str
    action: ConstraintAction
    derivation_chains: list[Chain] = field(default_factory=list)
    explanation: str = ""
    override: Optional[ConstraintOverride] = None

    @property
    def is_fully_overridden(self) -> bool:
        return self.override is not None and self.override.override_scope == OverrideScope.FULL

    @property
    def is_partially_overridden(self) -> bool:
        return self.override is not None and self.override.override_scope == OverrideScope.PARTIAL

    @property
    def targets_skills(self) -> bool:
        return self.action.target_field == DERIVED_SKILLS

    @property
    def is_effective_skill_filter(self) -> bool:
        return not self.is_fully_overridden and self.targets_skills and self.action.effect == RuleEffect.FILTER

    @property
    def is_effective_skill_boost(self) -> bool:
        return not self.is_fully_overridden and self.targets_skills and self.action.effect == RuleEffect.BOOST

    def to_dict(self) -> dict:
        action = {
            "effect": self.action.effect.value,
            "targetField": self.action.target_field,
            "targetValue": self.action.target_value,
        }
        if self.action.boost_strength is not None:
            action["boostStrength"] = self.action.boost_strength
        d = {
            "rule": {"id": self.rule_id, "name": self.rule_name},
            "action": action,
            "provenance": {
                "derivationChains": [list(chain) for chain in self.derivation_chains],
                "explanation": self.explanation,
            },
        }
        if self.override is not None:
            d["override"] = self.override.to_dict()
        return d


def event_to_derived_constraint(
    event: RuleEvent,
    rules: Sequence[InferenceRule],
    context: InferenceContext,
) -> DerivedConstraint:
    """Turn a fired event into a DerivedConstraint.

    Chains are built from the provenance of the context the event fired
    against; the override is resolved against the context's meta.
    """
    params = event.params
    rule = find_rule(rules, params.rule_id)
    effect = rule.effect if rule is not None else RuleEffect.from_event_type(event.type)

    resolution = determine_override_status(params, effect, context.meta)
    chains = build_derivation_chains(
        params.rule_id,
        rules,
        context.derived.skill_provenance,
        context.derived.required_property_provenance,
        context.derived.preferred_property_provenance,
    )

    return DerivedConstraint(
        rule_id=params.rule_id,
        rule_name=rule.name if rule is not None else params.rule_id,
        action=ConstraintAction(
            effect=effect,
            target_field=params.target_field,
            target_value=resolution.effective_target_value,
            boost_strength=params.boost_strength,
        ),
        derivation_chains=chains,
        explanation=params.rationale,
        override=resolution.override,
    )


def _record(values: dict, provenance: ProvenanceMap, key: str, value: str, chains: list[Chain]) -> None:
    """First write wins on the value; later writers only add explanation."""
    if key not in values:
        values[key] = value
        provenance[key] = [list(c) for c in chains]
    else:
        provenance[key] = deduplicate_chains(provenance.get(key, []) + chains)


def merge_derived_values_into_context(
    context: InferenceContext,
    constraints: Sequence[DerivedConstraint],
    processed_rule_ids: Optional[set[str]] = None,
) -> InferenceContext:
    """Fold derived skills and properties into a new context for chaining.

    - derivedSkills: union into all_skills, chains merged per skill
    - preferred* string targets: normalized key into required_properties
      (filter rules) or preferred_properties (boost rules)
    - anything else: ignored

    processed_rule_ids is updated in place so each constraint merges once.
    """
    if processed_rule_ids is None:
        processed_rule_ids = set()

    derived = context.derived.copy()

    for constraint in constraints:
        if constraint.rule_id in processed_rule_ids:
            continue
        processed_rule_ids.add(constraint.rule_id)
        if constraint.is_fully_overridden:
            continue

        target_field = constraint.action.target_field
        target_value = constraint.action.target_value
        chains = constraint.derivation_chains

        if target_field == DERIVED_SKILLS:
            skills = target_value if isinstance(target_value, list) else [target_value]
            for skill in skills:
                if not isinstance(skill, str):
                    continue
                if skill not in derived.all_skills:
                    derived.all_skills.append(skill)
                    derived.skill_provenance[skill] = [list(c) for c in chains]
                else:
                    derived.skill_provenance[skill] = deduplicate_chains(
                        derived.skill_provenance.get(skill, []) + chains
                    )
        elif target_field.startswith("preferred") and isinstance(target_value, str):
            key = normalize_property_key(target_field)
            if constraint.action.effect == RuleEffect.FILTER:
                _record(derived.required_properties, derived.required_property_provenance, key, target_value, chains)
            else:
                _record(derived.preferred_properties, derived.preferred_property_provenance, key, target_value, chains)

    return replace(context, derived=derived)
