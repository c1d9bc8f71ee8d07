"""Shared helpers: error types and activity file discovery."""
