"""Configuration, security primitives, and background task helpers."""
