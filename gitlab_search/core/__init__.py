"""Configuration lookup and logging setup."""
