"""Core runtime of shellbridge: logging helpers and the plugin bridge."""
