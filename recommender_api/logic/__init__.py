"""Logic module for forward-chaining requirement inference."""

from .context import InferenceContext, create_inference_context, compute_context_hash, normalize_property_key
from .constraints import DerivedConstraint, event_to_derived_constraint, merge_derived_values_into_context
from .inference_engine import InferenceEngine, InferenceResult, run_inference
from .overrides import OverrideScope, OverrideReason, determine_override_status
from .provenance import build_derivation_chains, extract_derived_triggers
from .rule_evaluator import ConditionTreeEvaluator, FactEvaluator

__all__ = [
    'InferenceContext',
    'create_inference_context',
    'compute_context_hash',
    'normalize_property_key',
    'DerivedConstraint',
    'event_to_derived_constraint',
    'merge_derived_values_into_context',
    'InferenceEngine',
    'InferenceResult',
    'run_inference',
    'OverrideScope',
    'OverrideReason',
    'determine_override_status',
    'build_derivation_chains',
    'extract_derived_triggers',
    'ConditionTreeEvaluator',
    'FactEvaluator',
]
