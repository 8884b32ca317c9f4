"""Core primitives shared across envrefresh."""
