"""Utility helpers shared across callforge modules."""
