from __future__ import annotations

from cinematic.api.caching.http_cache import Validators, maybe_not_modified, stat_or_none, validators_for

__all__ = ["Validators", "maybe_not_modified", "stat_or_none", "validators_for"]
