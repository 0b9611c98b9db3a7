"""CLI sub-applications."""
