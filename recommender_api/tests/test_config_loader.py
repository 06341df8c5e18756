"""Pin knowledge base loading and rule schema behavior."""

import pytest
from pydantic import ValidationError

from recommender_api.config_loader import (
    InferenceRule,
    KnowledgeBaseConfig,
    RuleEffect,
    find_rule,
    get_knowledge_base_summary,
    load_knowledge_base,
    reload_knowledge_base,
)


class TestKnowledgeBaseLoading:
    def test_load_returns_config(self, knowledge_base):
        assert isinstance(knowledge_base, KnowledgeBaseConfig)

    def test_max_iterations(self, knowledge_base):
        assert knowledge_base.max_inference_iterations == 10

    def test_rule_counts(self, knowledge_base):
        assert len(knowledge_base.filter_rules) == 3
        assert len(knowledge_base.boost_rules) == 12

    def test_filter_rules_come_first(self, knowledge_base):
        ids = [r.id for r in knowledge_base.inference_rules]
        assert ids[:3] == [
            "scaling-requires-distributed",
            "kubernetes-requires-containers",
            "distributed-requires-observability",
        ]

    def test_effect_decided_at_load(self, knowledge_base):
        assert all(r.effect == RuleEffect.FILTER for r in knowledge_base.filter_rules)
        assert all(r.effect == RuleEffect.BOOST for r in knowledge_base.boost_rules)

    def test_find_rule(self, knowledge_base):
        rule = find_rule(knowledge_base.inference_rules, "kubernetes-prefers-helm")
        assert rule.name == "Kubernetes Benefits from Helm Skills"
        assert rule.event.params.boost_strength == 0.5
        assert find_rule(knowledge_base.inference_rules, "no-such-rule") is None

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_knowledge_base(tmp_path / "missing.yaml")

    def test_empty_file_gives_empty_catalogue(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MAX_INFERENCE_ITERATIONS", raising=False)
        path = tmp_path / "rules.yaml"
        path.write_text("")
        config = load_knowledge_base(path)
        assert config.inference_rules == []
        assert config.max_inference_iterations == 10

    def test_env_overrides_iterations(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MAX_INFERENCE_ITERATIONS", "3")
        path = tmp_path / "rules.yaml"
        path.write_text("max_inference_iterations: 7\n")
        assert load_knowledge_base(path).max_inference_iterations == 3

    def test_env_path_used_by_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MAX_INFERENCE_ITERATIONS", raising=False)
        path = tmp_path / "rules.yaml"
        path.write_text("max_inference_iterations: 4\n")
        monkeypatch.setenv("KNOWLEDGE_BASE_PATH", str(path))
        assert reload_knowledge_base().max_inference_iterations == 4
        monkeypatch.delenv("KNOWLEDGE_BASE_PATH")
        reload_knowledge_base()


class TestRuleSchema:
    def test_duplicate_rule_ids_rejected(self, make_rule, skill_leaf):
        rule = make_rule("dup", {"all": [skill_leaf("a")]}, ["b"])
        with pytest.raises(ValidationError):
            KnowledgeBaseConfig(filter_rules=[rule], boost_rules=[rule])

    def test_missing_event_params_rejected(self):
        with pytest.raises(ValidationError):
            InferenceRule(name="broken", conditions={"all": []}, event={"type": "derived-filter", "params": {}})

    def test_malformed_leaf_still_loads(self, make_rule):
        rule = make_rule("odd", {"all": [{"path": "not-a-path"}]}, ["x"])
        leaf = rule.conditions.leaves()[0]
        assert leaf.fact is None
        assert leaf.path == "not-a-path"

    def test_leaves_walk_nested_groups(self, make_rule, skill_leaf, request_leaf):
        rule = make_rule("nested", {
            "all": [request_leaf("teamFocus", "scaling")],
            "any": [{"all": [skill_leaf("a")]}, skill_leaf("b")],
        }, ["x"])
        values = [leaf.value for leaf in rule.conditions.leaves()]
        assert values == ["scaling", "a", "b"]

    def test_unknown_event_type_is_boost(self, make_rule, skill_leaf):
        rule = make_rule("weird", {"all": [skill_leaf("a")]}, ["b"], event_type="something-else")
        assert rule.effect == RuleEffect.BOOST

    def test_event_params_dump_camel_case(self, knowledge_base):
        rule = find_rule(knowledge_base.inference_rules, "greenfield-prefers-senior")
        params = rule.event.params.model_dump(by_alias=True, exclude_none=True)
        assert params["ruleId"] == "greenfield-prefers-senior"
        assert params["targetField"] == "preferredSeniorityLevel"
        assert params["targetValue"] == "senior"


class TestSummary:
    def test_summary_lists_every_rule(self, knowledge_base):
        summary = get_knowledge_base_summary(knowledge_base)
        assert summary["rule_count"] == 15
        first = summary["rules"][0]
        assert first["id"] == "scaling-requires-distributed"
        assert first["effect"] == "filter"
