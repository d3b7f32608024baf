"""
Named exclusive leases with a time-to-live.

A lease keeps two runs of the same scheduled job from overlapping. Leases
expire on their own so a crashed holder cannot block its job forever.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterator, Optional
from uuid import uuid4

from .clock import Clock, system_clock
from .exceptions import JobLockedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lease:
    """A granted lease. ``token`` identifies the holder on release."""

    name: str
    token: str
    expires_at: datetime


class LeaseManager:
    """
    Process-local lease table.

    acquire() is an atomic compare-and-set under a mutex: it succeeds only if
    no unexpired lease with the same name exists.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or system_clock
        self._mutex = threading.Lock()
        self._leases: Dict[str, Lease] = {}

    def acquire(self, name: str, ttl_seconds: float) -> Optional[Lease]:
        now = self._clock.now()
        with self._mutex:
            current = self._leases.get(name)
            if current is not None and current.expires_at > now:
                return None
            if current is not None:
                logger.warning("Lease %s expired at %s; taking over", name, current.expires_at)
            lease = Lease(
                name=name,
                token=str(uuid4()),
                expires_at=now + timedelta(seconds=ttl_seconds),
            )
            self._leases[name] = lease
            return lease

    def release(self, lease: Lease) -> bool:
        with self._mutex:
            current = self._leases.get(lease.name)
            if current is None or current.token != lease.token:
                return False
            del self._leases[lease.name]
            return True

    def is_held(self, name: str) -> bool:
        now = self._clock.now()
        with self._mutex:
            current = self._leases.get(name)
            return current is not None and current.expires_at > now

    @contextmanager
    def hold(self, name: str, ttl_seconds: float) -> Iterator[Lease]:
        """
        Hold ``name`` for the duration of the block.

        Raises:
            JobLockedError: If another holder has an unexpired lease
        """
        lease = self.acquire(name, ttl_seconds)
        if lease is None:
            raise JobLockedError(f"Lease already held: {name}")
        try:
            yield lease
        finally:
            self.release(lease)
