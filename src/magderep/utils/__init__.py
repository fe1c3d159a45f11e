"""Shared helpers for file IO, validation and subprocess execution."""
