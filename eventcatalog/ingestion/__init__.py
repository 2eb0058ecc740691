"""Ingestion: producer registry and identity-resolving upsert."""
