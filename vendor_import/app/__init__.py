"""Command-level composition of the vendoring framework (import / generate / regenerate)."""
