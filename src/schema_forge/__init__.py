"""
SchemaForge - schema compiler, version store and runtime resource registry.

Turns AI-proposed entity schemas into validated, deterministic DDL with
row-level isolation, keeps every accepted schema as an immutable version and
publishes the result to a registry consumed by generic CRUD views.
"""

__version__ = "0.1.0"
