"""keyshift: provider credential storage and migration for Anthropic-compatible tooling."""

__version__ = "0.1.0"
