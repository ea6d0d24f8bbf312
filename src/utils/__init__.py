"""Domain managers and helpers."""
