"""Infrastructure layer: schema models, DDL compiler, SQL helpers, validation."""
