# -*- coding: utf-8 -*-
"""
Short-lived, per-organization cache for aggregate reports.

Entries expire after ``Config.REPORT_CACHE_TTL_SECONDS`` and every billing write
drops the organization's entries, so a report is at most one TTL stale.
"""
import threading
import time

from billing.config import Config


class ReportCache:

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, organization_id, key):
        with self._lock:
            entry = self._entries.get((organization_id, key))
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= time.monotonic():
                del self._entries[(organization_id, key)]
                return None
            return value

    def set(self, organization_id, key, value):
        with self._lock:
            self._entries[(organization_id, key)] = (time.monotonic() + self.ttl_seconds, value)

    def invalidate(self, organization_id):
        with self._lock:
            for cache_key in [k for k in self._entries if k[0] == organization_id]:
                del self._entries[cache_key]

    def clear(self):
        with self._lock:
            self._entries.clear()


report_cache = ReportCache(Config.REPORT_CACHE_TTL_SECONDS)
