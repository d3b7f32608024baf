"""
Persistence for anomaly alerts.

Only alerts the detector decides to keep (high and critical by default) reach
the store. Alerts are append-only.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .schema import AnomalyAlert


class AlertStore(ABC):
    """
    Append-only alert log.
    """

    @abstractmethod
    def append(self, alert: AnomalyAlert) -> AnomalyAlert:
        """Persist a single alert."""

    @abstractmethod
    def list_since(self, since: datetime, limit: Optional[int] = None) -> List[AnomalyAlert]:
        """Alerts with timestamp >= since, newest first."""


class InMemoryAlertStore(AlertStore):
    """Thread-safe in-memory alert log."""

    def __init__(self) -> None:
        self._alerts: List[AnomalyAlert] = []
        self._lock = threading.Lock()

    def append(self, alert: AnomalyAlert) -> AnomalyAlert:
        with self._lock:
            self._alerts.append(alert)
        return alert

    def list_since(self, since: datetime, limit: Optional[int] = None) -> List[AnomalyAlert]:
        with self._lock:
            matched = [a for a in self._alerts if a.timestamp >= since]
        matched.sort(key=lambda a: a.timestamp, reverse=True)
        return matched[:limit] if limit is not None else matched

    def __len__(self) -> int:
        with self._lock:
            return len(self._alerts)
