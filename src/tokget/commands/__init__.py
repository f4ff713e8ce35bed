"""Built-in sub-commands registered on the root Typer app."""
