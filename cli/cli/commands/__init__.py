"""Subcommands of the revkit CLI."""
