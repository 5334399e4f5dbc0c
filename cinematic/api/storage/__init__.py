from __future__ import annotations

from cinematic.api.storage.json_file import JsonDocument

__all__ = ["JsonDocument"]
