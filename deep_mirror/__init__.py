"""Deep Mirror: adaptive multi-stage AI self-assessment."""

__version__ = "0.1.0"
