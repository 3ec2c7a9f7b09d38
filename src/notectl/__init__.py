"""notectl: schema-governed markdown vault CLI."""

__version__ = "0.1.0"
