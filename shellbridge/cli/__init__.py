"""Command line interface for shellbridge."""
