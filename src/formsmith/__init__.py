"""Form definition editor core: documents, store, editing sessions and persistence."""

__version__ = "0.1.0"
