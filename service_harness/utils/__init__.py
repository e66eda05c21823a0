"""Shared helpers for the service harness."""
