"""
Core Infrastructure for speechmix.

This package provides foundational components:
    - config.py: Configuration loading and validation
    - errors.py: Composition error taxonomy
    - logging/: Structured logging with numeric levels
"""
