"""Task notification and lifecycle engine."""
