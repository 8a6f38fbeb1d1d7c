"""
Typed exception hierarchy for the migration pipeline.

Every error has a typed class (catch by type, not by message), a ``code``
class attribute (machine-readable, stable across message rewording) and
structured attributes carrying the context needed for remediation.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MigrationKernelError (base)
    |
    +-- InputError                      run-fatal: the executor aborts
    |   +-- InputDirectoryNotFoundError
    |   +-- SchemaDefinitionNotFoundError
    |
    +-- ImportStateError
    |   +-- InvalidRunTransitionError
    |
    +-- ConflictError                   per record: converted to ImportException
    |   +-- LegacyKeyConflictError
    |
    +-- PersistenceError                per record: converted to ImportException
    |   +-- RecordPersistenceError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|------------------------------------
Input        | INPUT_DIRECTORY_NOT_FOUND   | --input directory does not exist
             | SCHEMA_DEFINITION_NOT_FOUND | Document exists but its .xsd does not
-------------|-----------------------------|------------------------------------
State        | INVALID_RUN_TRANSITION      | Executor asked to move between illegal states
-------------|-----------------------------|------------------------------------
Conflict     | LEGACY_KEY_CONFLICT         | Legacy key exists under FailOnConflict
-------------|-----------------------------|------------------------------------
Persistence  | RECORD_PERSISTENCE_FAILED   | Unexpected failure writing one record
-------------|-----------------------------|------------------------------------
Config       | CONFIGURATION_ERROR         | Malformed or unknown settings keys
"""

from __future__ import annotations


class MigrationKernelError(Exception):
    """
    Base exception for all migration pipeline errors.

    All subclasses carry a ``code`` class attribute.
    """

    code: str = "MIGRATION_KERNEL_ERROR"


# Input errors (the only run-fatal category)


class InputError(MigrationKernelError):
    """Base exception for missing input conditions."""

    code: str = "INPUT_ERROR"


class InputDirectoryNotFoundError(InputError):
    """The input directory handed to the pipeline does not exist."""

    code: str = "INPUT_DIRECTORY_NOT_FOUND"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Input directory not found: {path}")


class SchemaDefinitionNotFoundError(InputError):
    """A source document exists but its schema definition does not."""

    code: str = "SCHEMA_DEFINITION_NOT_FOUND"

    def __init__(self, document_path: str, schema_path: str):
        self.document_path = document_path
        self.schema_path = schema_path
        super().__init__(
            f"Schema definition not found for {document_path}: {schema_path}"
        )


# Run state errors


class ImportStateError(MigrationKernelError):
    """Base exception for executor state machine errors."""

    code: str = "IMPORT_STATE_ERROR"


class InvalidRunTransitionError(ImportStateError):
    """The executor attempted an illegal state transition."""

    code: str = "INVALID_RUN_TRANSITION"

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Illegal run transition: {from_state} -> {to_state}")


# Per-record errors


class ConflictError(MigrationKernelError):
    """Base exception for natural-key collisions."""

    code: str = "CONFLICT_ERROR"


class LegacyKeyConflictError(ConflictError):
    """A record with the same legacy key already exists (FailOnConflict)."""

    code: str = "LEGACY_KEY_CONFLICT"

    def __init__(self, entity_type: str, legacy_id: str, existing_id: str):
        self.entity_type = entity_type
        self.legacy_id = legacy_id
        self.existing_id = existing_id
        super().__init__(
            f"{entity_type} with legacy_id '{legacy_id}' already exists (id={existing_id})"
        )


class PersistenceError(MigrationKernelError):
    """Base exception for store write failures."""

    code: str = "PERSISTENCE_ERROR"


class RecordPersistenceError(PersistenceError):
    """Unexpected failure writing a single record."""

    code: str = "RECORD_PERSISTENCE_FAILED"

    def __init__(self, entity_type: str, legacy_id: str, reason: str):
        self.entity_type = entity_type
        self.legacy_id = legacy_id
        self.reason = reason
        super().__init__(f"Failed to write {entity_type} '{legacy_id}': {reason}")


# Configuration


class ConfigurationError(MigrationKernelError):
    """Settings file is malformed or names unknown keys."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        super().__init__(message if source is None else f"{source}: {message}")
