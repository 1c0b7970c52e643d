"""creatorscope - capture creator profiles from an authenticated marketplace dashboard."""

__version__ = "0.1.0"
