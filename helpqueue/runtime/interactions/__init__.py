"""Interaction routing: handler maps, the composer, and the dispatcher."""
