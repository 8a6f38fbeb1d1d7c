"""Pure domain types for the import pipeline. ZERO I/O."""
