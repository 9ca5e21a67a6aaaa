"""Persistence: server backups and the attendance log."""
