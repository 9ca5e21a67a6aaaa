"""Concrete collaborator implementations backed by external services."""
