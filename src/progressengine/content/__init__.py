"""Bundled lesson catalog data."""
