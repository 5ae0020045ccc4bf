"""Shared helpers for the pocketbook commands."""
