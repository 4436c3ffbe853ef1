"""Command-line interface: ``python -m schema_forge.cli <command>``."""
