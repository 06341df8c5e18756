"""Knowledge Base Loader for the Inference Engine.

The inference rule catalogue is static declarative data kept in YAML
(knowledge_base/inference_rules.yaml). This module validates it with pydantic
and exposes a cached, read-only KnowledgeBaseConfig.
"""

import os
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

load_dotenv()

logger = logging.getLogger(__name__)

_KNOWLEDGE_BASE_DIR = Path(__file__).parent / "knowledge_base"
DEFAULT_RULES_PATH = _KNOWLEDGE_BASE_DIR / "inference_rules.yaml"
DEFAULT_MAX_INFERENCE_ITERATIONS = 10


# =============================================================================
# RULE SCHEMA
# =============================================================================

class RuleEffect(str, Enum):
    """What a fired rule does to the search: hard filter or ranking boost."""
    FILTER = "filter"
    BOOST = "boost"

    @classmethod
    def from_event_type(cls, event_type: Optional[str]) -> "RuleEffect":
        return cls.FILTER if event_type == "derived-filter" else cls.BOOST


class RuleCondition(BaseModel):
    """A node of a rule's condition tree.

    Either a leaf ({fact, path, operator, value}) or a group (all / any).
    Every field is optional so a malformed leaf still loads; it simply never
    contributes a derived trigger.
    """
    model_config = ConfigDict(extra="ignore")

    fact: Optional[str] = None
    path: Optional[str] = None
    operator: Optional[str] = None
    value: Any = None
    all: Optional[list["RuleCondition"]] = None
    any: Optional[list["RuleCondition"]] = None

    @property
    def is_group(self) -> bool:
        return self.all is not None or self.any is not None

    def leaves(self) -> list["RuleCondition"]:
        """All leaves of this subtree, `all` branch before `any` branch."""
        if not self.is_group:
            return [self]
        found = []
        for child in (self.all or []) + (self.any or []):
            found.extend(child.leaves())
        return found


class EventParams(BaseModel):
    """Payload of a rule event. Wire names are camelCase."""
    model_config = ConfigDict(populate_by_name=True)

    rule_id: str = Field(alias="ruleId")
    target_field: str = Field(alias="targetField")
    target_value: Union[list[str], str, float, int] = Field(alias="targetValue")
    boost_strength: Optional[float] = Field(default=None, alias="boostStrength")
    rationale: str = ""


class RuleEvent(BaseModel):
    """The event a rule emits when its conditions hold."""
    type: str
    params: EventParams


class InferenceRule(BaseModel):
    """A declarative inference rule: condition tree plus a typed event."""
    name: str
    priority: int = 1
    conditions: RuleCondition
    event: RuleEvent
    effect: RuleEffect = RuleEffect.BOOST

    @model_validator(mode="before")
    @classmethod
    def _derive_effect(cls, data: Any) -> Any:
        # Effect is fixed once here, never re-derived from the event string.
        if isinstance(data, dict) and "effect" not in data:
            event = data.get("event")
            event_type = event.get("type") if isinstance(event, dict) else getattr(event, "type", None)
            data = {**data, "effect": RuleEffect.from_event_type(event_type)}
        return data

    @property
    def id(self) -> str:
        return self.event.params.rule_id


class KnowledgeBaseConfig(BaseModel):
    """Validated inference knowledge base."""
    max_inference_iterations: int = Field(default=DEFAULT_MAX_INFERENCE_ITERATIONS, ge=1)
    filter_rules: list[InferenceRule] = Field(default_factory=list)
    boost_rules: list[InferenceRule] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_rule_ids(self) -> "KnowledgeBaseConfig":
        seen = set()
        for rule in self.inference_rules:
            if rule.id in seen:
                raise ValueError(f"Duplicate inference rule id: {rule.id}")
            seen.add(rule.id)
        return self

    @property
    def inference_rules(self) -> list[InferenceRule]:
        """Filter rules first, then boost rules."""
        return [*self.filter_rules, *self.boost_rules]


def find_rule(rules: Sequence[InferenceRule], rule_id: str) -> Optional[InferenceRule]:
    """First rule with the given id, or None."""
    for rule in rules:
        if rule.id == rule_id:
            return rule
    return None


# =============================================================================
# LOADER
# =============================================================================

def load_knowledge_base(config_path: Optional[Union[str, Path]] = None) -> KnowledgeBaseConfig:
    """Load and validate the inference knowledge base from YAML.

    Args:
        config_path: Path to the YAML file. Defaults to KNOWLEDGE_BASE_PATH
            from the environment, then the bundled inference_rules.yaml.

    Returns:
        Validated KnowledgeBaseConfig

    Raises:
        FileNotFoundError: If the file does not exist
        pydantic.ValidationError: If the catalogue is structurally invalid
    """
    if config_path is None:
        config_path = os.getenv("KNOWLEDGE_BASE_PATH") or DEFAULT_RULES_PATH

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Knowledge base not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    env_iterations = os.getenv("MAX_INFERENCE_ITERATIONS")
    if env_iterations:
        raw["max_inference_iterations"] = int(env_iterations)

    config = KnowledgeBaseConfig(**raw)
    logger.info(
        f"[KnowledgeBase] Loaded {len(config.filter_rules)} filter rules and "
        f"{len(config.boost_rules)} boost rules from {path.name} "
        f"(max iterations: {config.max_inference_iterations})"
    )
    return config


def get_knowledge_base_summary(config: KnowledgeBaseConfig) -> dict:
    """Summarize the catalogue for the API."""
    return {
        "max_inference_iterations": config.max_inference_iterations,
        "rule_count": len(config.inference_rules),
        "rules": [
            {
                "id": rule.id,
                "name": rule.name,
                "effect": rule.effect.value,
                "priority": rule.priority,
                "target_field": rule.event.params.target_field,
            }
            for rule in config.inference_rules
        ],
    }


# =============================================================================
# SINGLETON
# =============================================================================

_knowledge_base: Optional[KnowledgeBaseConfig] = None


def get_knowledge_base() -> KnowledgeBaseConfig:
    """Get the loaded knowledge base (singleton)."""
    global _knowledge_base
    if _knowledge_base is None:
        _knowledge_base = load_knowledge_base()
    return _knowledge_base


def reload_knowledge_base(config_path: Optional[Union[str, Path]] = None) -> KnowledgeBaseConfig:
    """Force reload of the knowledge base."""
    global _knowledge_base
    _knowledge_base = load_knowledge_base(config_path)
    return _knowledge_base
