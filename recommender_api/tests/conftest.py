"""Shared fixtures for the inference engine test suite.

Loads the REAL bundled knowledge base (knowledge_base/inference_rules.yaml) and
provides a factory for small hand-built rule sets.
"""

import sys
from pathlib import Path

import pytest

# Ensure the package is importable without installation
PACKAGE_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = PACKAGE_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from recommender_api.config_loader import DEFAULT_RULES_PATH, InferenceRule, load_knowledge_base
from recommender_api.models import SearchFilterRequest


# =============================================================================
# KNOWLEDGE BASE FIXTURES
# =============================================================================

@pytest.fixture
def knowledge_base(monkeypatch):
    """Real KnowledgeBaseConfig from the bundled YAML (env overrides cleared)."""
    monkeypatch.delenv("MAX_INFERENCE_ITERATIONS", raising=False)
    return load_knowledge_base(DEFAULT_RULES_PATH)


@pytest.fixture
def catalogue_rules(knowledge_base):
    return knowledge_base.inference_rules


# =============================================================================
# RULE FACTORY
# =============================================================================

def _skill_leaf(skill: str) -> dict:
    return {"fact": "derived", "path": "$.allSkills", "operator": "contains", "value": skill}


def _request_leaf(field: str, value, operator: str = "equal") -> dict:
    return {"fact": "request", "path": f"$.{field}", "operator": operator, "value": value}


def _make_rule(
    rule_id: str,
    conditions: dict,
    target_value,
    target_field: str = "derivedSkills",
    event_type: str = "derived-filter",
    boost_strength=None,
    priority: int = 1,
    name=None,
) -> InferenceRule:
    params = {
        "ruleId": rule_id,
        "targetField": target_field,
        "targetValue": target_value,
        "rationale": f"{rule_id} rationale",
    }
    if boost_strength is not None:
        params["boostStrength"] = boost_strength
    return InferenceRule(
        name=name or rule_id,
        priority=priority,
        conditions=conditions,
        event={"type": event_type, "params": params},
    )


@pytest.fixture
def make_rule():
    return _make_rule


@pytest.fixture
def skill_leaf():
    return _skill_leaf


@pytest.fixture
def request_leaf():
    return _request_leaf


@pytest.fixture
def skill_chain_rules():
    """R1: kubernetes -> helm, R2: helm -> charts, R3: charts -> templating."""
    return [
        _make_rule("R1", {"all": [_skill_leaf("kubernetes")]}, ["helm"]),
        _make_rule("R2", {"all": [_skill_leaf("helm")]}, ["charts"]),
        _make_rule("R3", {"all": [_skill_leaf("charts")]}, ["templating"]),
    ]


# =============================================================================
# REQUEST FIXTURES
# =============================================================================

@pytest.fixture
def kubernetes_request():
    return SearchFilterRequest.model_validate({"requiredSkills": [{"skill": "kubernetes"}]})


@pytest.fixture
def empty_request():
    return SearchFilterRequest()
