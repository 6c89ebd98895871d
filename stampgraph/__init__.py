"""Deterministic contract graphs for TypeScript, React and Vue projects."""

__version__ = "0.1.0"
