"""Command line interface for pcss."""
