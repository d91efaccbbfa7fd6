"""Bundled data files for declutter."""
