"""Shared utilities: API errors, crypto, parsing helpers."""
