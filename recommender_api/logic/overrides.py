"""User overrides of rule-derived constraints.

Override types, in precedence order (first match wins):
1. Explicit: the user listed the rule id in overriddenRuleIds -> FULL
2. Implicit field: the user set the rule's target field -> FULL
3. Implicit skill: a filter rule targets derivedSkills the user already
   requires or prefers -> FULL (all of them) or PARTIAL (some of them)

A FULL override keeps the constraint for audit but excludes it from merging.
A PARTIAL override merges only the skills the user did not handle.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..config_loader import EventParams, RuleEffect
from .context import ContextMeta

DERIVED_SKILLS = "derivedSkills"


class OverrideScope(str, Enum):
    FULL = "FULL"
    PARTIAL = "PARTIAL"


class OverrideReason(str, Enum):
    EXPLICIT_RULE = "explicit-rule-override"
    IMPLICIT_FIELD = "implicit-field-override"
    IMPLICIT_SKILL = "implicit-skill-override"


@dataclass(frozen=True)
class ConstraintOverride:
    """How a user override applied to a derived constraint."""
    override_scope: OverrideScope
    reason_type: OverrideReason
    overridden_skills: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overrideScope": self.override_scope.value,
            "overriddenSkills": list(self.overridden_skills),
            "reasonType": self.reason_type.value,
        }


@dataclass(frozen=True)
class OverrideResult:
    override: Optional[ConstraintOverride]
    effective_target_value: Any


def to_string_list(value: Any) -> list[str]:
    """Coerce a target value to a list of strings, dropping anything else."""
    if isinstance(value, list):
        return [v for v in value if isinstance(v, str)]
    return [value] if isinstance(value, str) else []


def determine_override_status(
    params: EventParams,
    effect: RuleEffect,
    meta: ContextMeta,
) -> OverrideResult:
    """Decide whether and how user input supersedes a fired rule."""
    if params.rule_id in meta.overridden_rule_ids:
        return OverrideResult(
            override=ConstraintOverride(
                override_scope=OverrideScope.FULL,
                reason_type=OverrideReason.EXPLICIT_RULE,
                overridden_skills=to_string_list(params.target_value),
            ),
            effective_target_value=params.target_value,
        )

    if params.target_field in meta.user_explicit_fields:
        return OverrideResult(
            override=ConstraintOverride(
                override_scope=OverrideScope.FULL,
                reason_type=OverrideReason.IMPLICIT_FIELD,
                overridden_skills=to_string_list(params.target_value),
            ),
            effective_target_value=params.target_value,
        )

    if effect == RuleEffect.FILTER and params.target_field == DERIVED_SKILLS:
        target_skills = to_string_list(params.target_value)
        user_skills = set(meta.user_explicit_skills)
        overlap = [skill for skill in target_skills if skill in user_skills]

        if len(overlap) == len(target_skills):
            return OverrideResult(
                override=ConstraintOverride(
                    override_scope=OverrideScope.FULL,
                    reason_type=OverrideReason.IMPLICIT_SKILL,
                    overridden_skills=overlap,
                ),
                effective_target_value=params.target_value,
            )
        if overlap:
            return OverrideResult(
                override=ConstraintOverride(
                    override_scope=OverrideScope.PARTIAL,
                    reason_type=OverrideReason.IMPLICIT_SKILL,
                    overridden_skills=overlap,
                ),
                effective_target_value=[s for s in target_skills if s not in user_skills],
            )

    return OverrideResult(override=None, effective_target_value=params.target_value)
