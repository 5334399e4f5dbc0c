"""CINEMATIC: catálogo de películas con caché local sobre Kinopoisk."""

__version__ = "1.0.0"
