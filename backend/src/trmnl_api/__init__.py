"""TRMNL plugin API host package."""
