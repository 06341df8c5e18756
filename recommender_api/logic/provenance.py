"""Derivation chains: which rules led to a derived constraint.

First-hop rules (conditions only on user-supplied request fields) get the
single chain [rule_id]. Chain rules test derived state; every derived value
they test contributes its own chains, extended by the current rule:

    teamFocus=scaling -> scaling-requires-distributed
        [['scaling-requires-distributed']]
    skill_distributed -> distributed-requires-observability
        [['scaling-requires-distributed', 'distributed-requires-observability']]
"""

from dataclasses import dataclass
from typing import Literal, Sequence

from ..config_loader import InferenceRule, find_rule
from .context import USER_INPUT, Chain, ProvenanceMap

TriggerType = Literal["skill", "requiredProperty", "preferredProperty"]

_REQUIRED_PREFIX = "$.requiredProperties."
_PREFERRED_PREFIX = "$.preferredProperties."


@dataclass(frozen=True)
class DerivedTrigger:
    """A derived value a chain rule tests."""
    type: TriggerType
    provenance_key: str  # skill id or normalized property key


def extract_derived_triggers(rules: Sequence[InferenceRule], rule_id: str) -> list[DerivedTrigger]:
    """Derived-state leaves of a rule's condition tree, `all` before `any`.

    Leaves on the request fact, unrecognized paths and unknown rules yield
    nothing.
    """
    rule = find_rule(rules, rule_id)
    if rule is None:
        return []

    triggers = []
    for leaf in rule.conditions.leaves():
        if leaf.fact != "derived":
            continue
        path = leaf.path
        if not isinstance(path, str) or not path.startswith("$."):
            continue

        if path == "$.allSkills" and leaf.operator == "contains":
            if isinstance(leaf.value, str):
                triggers.append(DerivedTrigger("skill", leaf.value))
        elif path.startswith(_REQUIRED_PREFIX) and len(path) > len(_REQUIRED_PREFIX):
            triggers.append(DerivedTrigger("requiredProperty", path[len(_REQUIRED_PREFIX):]))
        elif path.startswith(_PREFERRED_PREFIX) and len(path) > len(_PREFERRED_PREFIX):
            triggers.append(DerivedTrigger("preferredProperty", path[len(_PREFERRED_PREFIX):]))

    return triggers


def deduplicate_chains(chains: list[Chain]) -> list[Chain]:
    """Drop structurally equal chains, keeping first-seen order."""
    seen = set()
    unique = []
    for chain in chains:
        key = tuple(chain)
        if key not in seen:
            seen.add(key)
            unique.append(list(chain))
    return unique


def build_derivation_chains(
    rule_id: str,
    rules: Sequence[InferenceRule],
    skill_provenance: ProvenanceMap,
    required_property_provenance: ProvenanceMap,
    preferred_property_provenance: ProvenanceMap,
) -> list[Chain]:
    """All causal paths to a fired rule. Never empty."""
    triggers = extract_derived_triggers(rules, rule_id)
    if not triggers:
        return [[rule_id]]

    provenance_by_type = {
        "skill": skill_provenance,
        "requiredProperty": required_property_provenance,
        "preferredProperty": preferred_property_provenance,
    }

    chains = []
    for trigger in triggers:
        source_chains = provenance_by_type[trigger.type].get(trigger.provenance_key, [])
        for source in source_chains:
            # user-input marks a chain start, not a rule
            chains.append([rule for rule in source if rule != USER_INPUT] + [rule_id])

    unique = deduplicate_chains(chains)
    return unique if unique else [[rule_id]]
