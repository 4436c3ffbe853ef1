"""Domain layer: version store, resource registry and refinement sessions."""
