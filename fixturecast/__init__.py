"""FixtureCast scheduled prediction pipeline."""

__version__ = "1.0.0"
