"""Configuration for keyshift."""

from keyshift.config.settings import KeyshiftSettings

__all__ = ["KeyshiftSettings"]
