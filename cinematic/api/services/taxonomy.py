# tablas de géneros/países + filtros del navegador de películas
from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from cinematic.api.services.records import MovieRecord

# Etiqueta de género (URL) -> palabras clave tal y como llegan del origen.
# El match es por substring y case-insensitive.
GENRE_KEYWORDS: Final[dict[str, tuple[str, ...]]] = {
    "action": ("боевик", "экшн"),
    "drama": ("драма",),
    "comedy": ("комедия",),
    "horror": ("ужасы",),
    "scifi": ("фантастика", "научная фантастика"),
    "romance": ("мелодрама",),
    "thriller": ("триллер",),
    "fantasy": ("фэнтези",),
    "animation": ("мультфильм", "анимация"),
    "crime": ("криминал", "детектив"),
}

# Etiqueta de género -> id numérico del filtro del origen
GENRE_IDS: Final[dict[str, int]] = {
    "action": 3,
    "drama": 2,
    "comedy": 13,
    "horror": 17,
    "scifi": 6,
    "romance": 4,
    "thriller": 1,
    "fantasy": 5,
    "animation": 18,
    "crime": 3,
    "adventure": 7,
    "family": 19,
}

COUNTRY_IDS: Final[dict[str, int]] = {
    "США": 1,
    "Россия": 34,
    "Великобритания": 11,
    "Франция": 3,
    "Германия": 9,
    "Корея": 49,
    "Япония": 12,
    "Индия": 32,
}

SORT_ORDERS: Final[tuple[str, ...]] = ("RATING", "NUM_VOTE", "YEAR")
FILM_TYPES: Final[tuple[str, ...]] = ("ALL", "FILM", "TV_SERIES")

CLASSIC_YEARS: Final[tuple[int, int]] = (1950, 1989)


def genre_keywords(genre: str) -> tuple[str, ...]:
    """Keywords de una etiqueta; etiqueta desconocida => ella misma como keyword."""
    tag = (genre or "").strip().lower()
    return GENRE_KEYWORDS.get(tag) or ((tag,) if tag else ())


def matches_genre(record: MovieRecord, keywords: tuple[str, ...]) -> bool:
    genres = [str(g).lower() for g in (record.get("genres") or [])]
    return any(kw.lower() in g for kw in keywords for g in genres)


def parse_year_range(raw: str | None) -> tuple[int, int] | None:
    """
    "2020" -> (2020, 2020); "2010-2019" -> (2010, 2019); "classic" -> 1950-1989.
    Cualquier otra cosa => None (sin filtro de año).
    """
    s = (raw or "").strip().lower()
    if not s:
        return None
    if s == "classic":
        return CLASSIC_YEARS
    if "-" in s:
        left, _, right = s.partition("-")
        try:
            lo, hi = int(left), int(right)
        except ValueError:
            return None
        return (lo, hi) if lo <= hi else (hi, lo)
    try:
        y = int(s)
    except ValueError:
        return None
    return (y, y)


@dataclass(frozen=True)
class FilmFilters:
    year: str = ""
    genre: str = ""
    country: str = ""
    sort: str = "RATING"
    type: str = "ALL"

    @staticmethod
    def build(
        *,
        year: str | None = None,
        genre: str | None = None,
        country: str | None = None,
        sort: str | None = None,
        type: str | None = None,
    ) -> "FilmFilters":
        sort_v = (sort or "RATING").strip().upper()
        type_v = (type or "ALL").strip().upper()
        return FilmFilters(
            year=(year or "").strip(),
            genre=(genre or "").strip().lower(),
            country=(country or "").strip(),
            sort=sort_v if sort_v in SORT_ORDERS else "RATING",
            type=type_v if type_v in FILM_TYPES else "ALL",
        )

    def year_range(self) -> tuple[int, int] | None:
        return parse_year_range(self.year)

    def origin_params(self) -> dict[str, str]:
        params: dict[str, str] = {"order": self.sort, "type": self.type}
        yr = self.year_range()
        if yr is not None:
            params["yearFrom"] = str(yr[0])
            params["yearTo"] = str(yr[1])
        if self.genre in GENRE_IDS:
            params["genres"] = str(GENRE_IDS[self.genre])
        if self.country in COUNTRY_IDS:
            params["countries"] = str(COUNTRY_IDS[self.country])
        return params

    def matches(self, record: MovieRecord) -> bool:
        """Mismos criterios que el origen, aplicados a un registro cacheado."""
        yr = self.year_range()
        if yr is not None:
            year = record.get("year")
            if not isinstance(year, int) or not (yr[0] <= year <= yr[1]):
                return False
        if self.genre and not matches_genre(record, genre_keywords(self.genre)):
            return False
        if self.country and self.country not in (record.get("countries") or []):
            return False
        if self.type == "FILM" and record.get("type") == "series":
            return False
        if self.type == "TV_SERIES" and record.get("type") != "series":
            return False
        return True

    def sort_key(self, record: MovieRecord) -> float:
        if self.sort == "NUM_VOTE":
            return float(record.get("votes") or 0)
        if self.sort == "YEAR":
            return float(record.get("year") or 0)
        return float(record.get("rating") or 0.0)

    def as_dict(self) -> dict[str, str]:
        return {"year": self.year, "genre": self.genre, "country": self.country, "sort": self.sort}
