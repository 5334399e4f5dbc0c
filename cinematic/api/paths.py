# BASE_DIR + resolve_path + paths globales
from __future__ import annotations

import os
from pathlib import Path


# cinematic/api/paths.py -> repo_root = parents[2] (cinematic/api/*)
BASE_DIR = Path(__file__).resolve().parents[2]

# Plantillas y assets del front (se instalan con el paquete)
STATIC_DIR = Path(__file__).resolve().parents[1] / "static"


def resolve_path(env_name: str, default: Path) -> Path:
    raw = (os.getenv(env_name) or "").strip().strip('"').strip("'")
    if not raw:
        return default
    p = Path(raw).expanduser()
    if not p.is_absolute():
        p = (BASE_DIR / p).resolve()
    return p


DATA_DIR = resolve_path("DATA_DIR", BASE_DIR / "data")

MOVIES_DB_PATH = resolve_path("MOVIES_DB_PATH", DATA_DIR / "movies.json")

SITES_DB_PATH = resolve_path("SITES_DB_PATH", DATA_DIR / "sites.json")

WATCH_TEMPLATE_PATH = STATIC_DIR / "watch.html"
