"""
Experiments module: A/B test definitions, assignment, and significance testing.
"""

from .engine import ExperimentEngine
from .hashing import bucket_for, pick_variant, subject_hash
from .schema import (
	Assignment,
	AssignmentResult,
	ConfidenceInterval,
	ConversionEvent,
	Experiment,
	ExperimentConfig,
	ExperimentMetrics,
	ExperimentResults,
	ExperimentStatus,
	VariantConfig,
	VariantResult,
)
from .stats import normal_cdf, two_proportion_p_value, two_tailed_p_value, wilson_interval
from .store import ExperimentStore, InMemoryExperimentStore

__all__ = [
	"ExperimentEngine",
	"ExperimentStore",
	"InMemoryExperimentStore",
	"Experiment",
	"ExperimentConfig",
	"ExperimentMetrics",
	"ExperimentResults",
	"ExperimentStatus",
	"VariantConfig",
	"VariantResult",
	"ConfidenceInterval",
	"Assignment",
	"AssignmentResult",
	"ConversionEvent",
	"subject_hash",
	"bucket_for",
	"pick_variant",
	"wilson_interval",
	"normal_cdf",
	"two_tailed_p_value",
	"two_proportion_p_value",
]
