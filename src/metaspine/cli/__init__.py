"""metaspine command-line interface (Typer + Rich)."""
