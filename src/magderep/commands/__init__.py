"""Typer sub-applications for each magderep command."""
