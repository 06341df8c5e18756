"""Inference Context for Iterative Requirement Expansion.

The context is the fact base the rules are evaluated against. It is split into
three groups:
- request: the user's request fields plus flattened skill names
- derived: state that grows as rules fire (skills, properties, provenance)
- meta: bookkeeping for override detection

A context is treated as an immutable value: merging derived constraints
produces a new context, so earlier iterations remain inspectable.
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Optional

from ..models import SearchFilterRequest

USER_INPUT = "user-input"

# A chain is an ordered list of rule ids; a provenance map keys every derived
# value (skill id or normalized property key) to all chains that produced it.
Chain = list[str]
ProvenanceMap = dict[str, list[Chain]]


def normalize_property_key(key: str) -> str:
    """Strip the required/preferred prefix from a request field name.

    'requiredSeniorityLevel' -> 'seniorityLevel'
    'preferredMaxStartTime' -> 'maxStartTime'
    """
    for prefix in ("required", "preferred"):
        if key.startswith(prefix):
            rest = key[len(prefix):]
            return rest[:1].lower() + rest[1:]
    return key


@dataclass
class DerivedState:
    """Values that grow as rules fire."""
    all_skills: list[str] = field(default_factory=list)
    required_properties: dict[str, str] = field(default_factory=dict)
    preferred_properties: dict[str, str] = field(default_factory=dict)
    skill_provenance: ProvenanceMap = field(default_factory=dict)
    required_property_provenance: ProvenanceMap = field(default_factory=dict)
    preferred_property_provenance: ProvenanceMap = field(default_factory=dict)

    def copy(self) -> "DerivedState":
        return copy.deepcopy(self)


@dataclass(frozen=True)
class ContextMeta:
    """What the user touched, for override detection."""
    user_explicit_fields: frozenset[str] = frozenset()
    overridden_rule_ids: frozenset[str] = frozenset()
    user_explicit_skills: tuple[str, ...] = ()


@dataclass
class InferenceContext:
    request: dict = field(default_factory=dict)
    derived: DerivedState = field(default_factory=DerivedState)
    meta: ContextMeta = field(default_factory=ContextMeta)

    def to_facts(self) -> dict:
        """Named facts handed to the rule evaluator."""
        return {
            "request": self.request,
            "derived": {
                "allSkills": list(self.derived.all_skills),
                "requiredProperties": dict(self.derived.required_properties),
                "preferredProperties": dict(self.derived.preferred_properties),
            },
            "meta": {
                "userExplicitFields": sorted(self.meta.user_explicit_fields),
                "overriddenRuleIds": sorted(self.meta.overridden_rule_ids),
                "userExplicitSkills": list(self.meta.user_explicit_skills),
            },
        }

    def to_dict(self) -> dict:
        d = self.derived
        return {
            "request": self.request,
            "derived": {
                "allSkills": list(d.all_skills),
                "requiredProperties": dict(d.required_properties),
                "preferredProperties": dict(d.preferred_properties),
                "skillProvenance": d.skill_provenance,
                "requiredPropertyProvenance": d.required_property_provenance,
                "preferredPropertyProvenance": d.preferred_property_provenance,
            },
            "meta": {
                "userExplicitFields": sorted(self.meta.user_explicit_fields),
                "overriddenRuleIds": sorted(self.meta.overridden_rule_ids),
                "userExplicitSkills": list(self.meta.user_explicit_skills),
            },
        }


def _skill_names(skills: Optional[list]) -> list[str]:
    names = []
    for requirement in skills or []:
        if requirement.skill not in names:
            names.append(requirement.skill)
    return names


def _user_explicit_fields(fields: dict) -> frozenset[str]:
    """Every field the user set: scalars when defined, lists when non-empty.

    Any field in here is protected from being overwritten by a rule, whatever
    the rule's own intent.
    """
    return frozenset(
        key for key, value in fields.items()
        if value is not None and not (isinstance(value, list) and not value)
    )


def create_inference_context(request: Optional[SearchFilterRequest] = None) -> InferenceContext:
    """Convert a search filter request into the initial inference context.

    Only required skills seed allSkills (chaining fires from hard requirements
    only); both required and preferred skills count as user-explicit.
    """
    request = request or SearchFilterRequest()
    fields = request.to_fields()

    required_skill_names = _skill_names(request.required_skills)
    explicit_skills = list(required_skill_names)
    for name in _skill_names(request.preferred_skills):
        if name not in explicit_skills:
            explicit_skills.append(name)

    derived = DerivedState(
        all_skills=list(required_skill_names),
        skill_provenance={skill: [[USER_INPUT]] for skill in required_skill_names},
    )

    for key, value in fields.items():
        if not isinstance(value, str):
            continue
        normalized = normalize_property_key(key)
        if key.startswith("required"):
            derived.required_properties[normalized] = value
            derived.required_property_provenance[normalized] = [[USER_INPUT]]
        elif key.startswith("preferred"):
            derived.preferred_properties[normalized] = value
            derived.preferred_property_provenance[normalized] = [[USER_INPUT]]

    return InferenceContext(
        request={**fields, "skills": list(required_skill_names)},
        derived=derived,
        meta=ContextMeta(
            user_explicit_fields=_user_explicit_fields(fields),
            overridden_rule_ids=frozenset(request.overridden_rule_ids or []),
            user_explicit_skills=tuple(explicit_skills),
        ),
    )


def compute_context_hash(context: InferenceContext) -> str:
    """Fixpoint fingerprint: canonical JSON of the sorted skill list.

    Property maps are not part of the hash.
    """
    return json.dumps(sorted(context.derived.all_skills))
