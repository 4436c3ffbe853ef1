"""IO layer: bookkeeping persistence and DDL provisioning."""
