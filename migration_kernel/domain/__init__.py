"""Pure domain helpers shared by the pipeline (zero I/O)."""
