"""Core infrastructure: paths, configuration, errors and concurrency helpers."""
