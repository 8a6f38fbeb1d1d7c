"""
migration_kernel -- Infrastructure for the legacy data migration pipeline.

Structured logging, typed exceptions, the injectable clock, the SQLAlchemy
base/engine and the ORM models of the target store. Nothing in this package
imports from migration_ingestion or scripts.
"""
