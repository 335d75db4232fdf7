"""Configuration, logging and blocking-I/O helpers."""
