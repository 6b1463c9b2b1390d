"""Utility helpers for the storage migration."""
