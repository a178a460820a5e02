"""TMDB Embed: multi-provider stream aggregation gateway."""

__version__ = "0.1.0"
