"""Command line interface for AccessLayer."""
