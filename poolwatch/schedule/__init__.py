"""Stored schedule access: lookup, matching and write-back."""
