"""Utility modules for declutter."""
