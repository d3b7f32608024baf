"""
Per-metric anomaly configuration.

The registry is created once at startup and handed to the detector; it is
mutable at runtime through add().
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from .schema import MetricAnomalyConfig, Sensitivity

logger = logging.getLogger(__name__)

DEFAULT_METRIC_CONFIGS: List[MetricAnomalyConfig] = [
    MetricAnomalyConfig(
        metric="user_registrations",
        threshold=2.5,
        window_minutes=60,
        bucket_minutes=5,
        min_data_points=10,
        sensitivity=Sensitivity.MEDIUM,
    ),
    MetricAnomalyConfig(
        metric="group_creations",
        threshold=3.0,
        window_minutes=60,
        bucket_minutes=5,
        min_data_points=8,
        sensitivity=Sensitivity.MEDIUM,
    ),
    MetricAnomalyConfig(
        metric="contributions",
        threshold=2.0,
        window_minutes=30,
        bucket_minutes=2,
        min_data_points=20,
        sensitivity=Sensitivity.HIGH,
    ),
    MetricAnomalyConfig(
        metric="error_rate",
        threshold=2.0,
        window_minutes=15,
        bucket_minutes=5,
        min_data_points=12,
        sensitivity=Sensitivity.HIGH,
    ),
    MetricAnomalyConfig(
        metric="response_time",
        threshold=2.5,
        window_minutes=30,
        bucket_minutes=2,
        min_data_points=15,
        sensitivity=Sensitivity.MEDIUM,
    ),
]


class AnomalyConfigStore:
    """
    Thread-safe mapping of metric name to MetricAnomalyConfig.
    """

    def __init__(self, configs: Optional[Iterable[MetricAnomalyConfig]] = None) -> None:
        self._lock = threading.Lock()
        self._configs: Dict[str, MetricAnomalyConfig] = {}
        for cfg in configs or []:
            self._configs[cfg.metric] = cfg

    @classmethod
    def with_defaults(cls) -> "AnomalyConfigStore":
        return cls(cfg.model_copy() for cfg in DEFAULT_METRIC_CONFIGS)

    def add(self, cfg: MetricAnomalyConfig) -> MetricAnomalyConfig:
        """Register or replace the configuration for cfg.metric."""
        with self._lock:
            replaced = cfg.metric in self._configs
            self._configs[cfg.metric] = cfg
        logger.info(
            "%s anomaly config for metric=%s threshold=%.2f sensitivity=%s",
            "Replaced" if replaced else "Added",
            cfg.metric,
            cfg.threshold,
            cfg.sensitivity.value,
        )
        return cfg

    def get(self, metric: str) -> Optional[MetricAnomalyConfig]:
        with self._lock:
            return self._configs.get(metric)

    def list(self) -> List[MetricAnomalyConfig]:
        with self._lock:
            return list(self._configs.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._configs)
