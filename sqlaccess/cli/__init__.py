"""Command line interface for sqlaccess."""
