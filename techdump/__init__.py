"""Diagnostic dump collector: stages command output, kernel state, logs and
configuration into one tar archive for offline debugging."""

__version__ = "1.0.0"
