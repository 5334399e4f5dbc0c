# meta tags de /watch/{id} + sitemap.xml
from __future__ import annotations

import html
import json
import re
from collections.abc import Iterable
from datetime import date
from pathlib import Path
from typing import Final
from urllib.parse import quote
from xml.sax.saxutils import escape as xml_escape

from cinematic.api.services.records import MovieRecord

DEFAULT_TITLE: Final[str] = "Смотреть онлайн — CINEMATIC"
DEFAULT_DESCRIPTION: Final[str] = "Смотрите лучшие фильмы и сериалы в премиум качестве бесплатно."
DEFAULT_IMAGE_PATH: Final[str] = "/assets/og-image.jpg"
DESCRIPTION_EXCERPT: Final[int] = 150

_TITLE_RE = re.compile(r"<title>.*?</title>", re.DOTALL)
_META_DESCRIPTION_RE = re.compile(r'name="description" content=".*?"')


def load_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def _movie_meta(movie: MovieRecord) -> tuple[str, str]:
    name = str(movie.get("title") or "")
    year = movie.get("year")
    year_part = f" ({year})" if year else ""
    title = f"{name} — смотреть онлайн бесплатно в 4K | CINEMATIC"
    desc = str(movie.get("description") or "")
    excerpt = f" {desc[:DESCRIPTION_EXCERPT]}..." if desc else ""
    description = f"Смотреть фильм {name}{year_part} онлайн в хорошем качестве.{excerpt}"
    return title, description


def _json_ld(movie: MovieRecord, image: str, description: str) -> str:
    data = {
        "@context": "https://schema.org",
        "@type": "Movie",
        "name": movie.get("title") or "",
        "image": image,
        "description": description,
        "datePublished": str(movie.get("year") or ""),
        "aggregateRating": {
            "@type": "AggregateRating",
            "ratingValue": str(movie.get("rating") or 0),
            "bestRating": "10",
            "ratingCount": str(movie.get("votes") or 0),
        },
    }
    # "</" dentro de un <script> cerraría la etiqueta
    body = json.dumps(data, ensure_ascii=False, indent=2).replace("</", "<\\/")
    return f'<script type="application/ld+json">\n{body}\n</script>\n'


def render_watch_page(template: str, *, movie_id: int | str, movie: MovieRecord | None, site_url: str) -> str:
    """
    Sustituye título, description, Open Graph y JSON-LD de la plantilla.
    `movie=None` (no resuelta) => metadatos genéricos del sitio y sin JSON-LD.
    `movie_id` es el segmento de la ruta tal como llegó (puede no ser numérico).
    """
    title = DEFAULT_TITLE
    description = DEFAULT_DESCRIPTION
    image = f"{site_url}{DEFAULT_IMAGE_PATH}"
    url = f"{site_url}/watch/{quote(str(movie_id), safe='')}"

    if movie is not None and movie.get("title"):
        title, description = _movie_meta(movie)
        if movie.get("poster"):
            image = str(movie["poster"])

    out = _TITLE_RE.sub(lambda _m: f"<title>{html.escape(title, quote=False)}</title>", template, count=1)
    out = out.replace('content="{{OG_TITLE}}"', f'content="{_attr(title)}"')
    out = out.replace('content="{{OG_DESCRIPTION}}"', f'content="{_attr(description)}"')
    out = out.replace('content="{{OG_IMAGE}}"', f'content="{_attr(image)}"')
    out = out.replace('content="{{OG_URL}}"', f'content="{_attr(url)}"')
    out = _META_DESCRIPTION_RE.sub(lambda _m: f'name="description" content="{_attr(description)}"', out, count=1)

    if movie is not None and movie.get("title"):
        out = out.replace("</head>", _json_ld(movie, image, description) + "</head>", 1)
    return out


def build_sitemap(movies: Iterable[MovieRecord], *, site_url: str, today: date) -> str:
    """Dos entradas estáticas + una por película cacheada."""
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        f"  <url><loc>{xml_escape(site_url)}/</loc><changefreq>daily</changefreq><priority>1.0</priority></url>",
        f"  <url><loc>{xml_escape(site_url)}/movies</loc><changefreq>daily</changefreq><priority>0.8</priority></url>",
    ]
    for movie in movies:
        movie_id = movie.get("id")
        if movie_id is None:
            continue
        cached_at = movie.get("cachedAt")
        lastmod = cached_at.split("T")[0] if isinstance(cached_at, str) and cached_at else today.isoformat()
        parts.append(
            f"  <url><loc>{xml_escape(site_url)}/watch/{xml_escape(str(movie_id))}</loc>"
            f"<lastmod>{xml_escape(lastmod)}</lastmod>"
            "<changefreq>weekly</changefreq><priority>0.7</priority></url>"
        )
    parts.append("</urlset>")
    return "\n".join(parts) + "\n"
