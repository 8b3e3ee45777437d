"""Endpoint modules for the hosted database and the toll search service."""
