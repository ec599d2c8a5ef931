"""Logging and metrics for kubepath."""
