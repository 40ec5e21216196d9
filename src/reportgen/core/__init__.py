"""Core primitives: errors, parameters, tables, cache and settings."""
