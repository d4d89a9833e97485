"""Service layer helpers (persistence, settings, import/export)."""
