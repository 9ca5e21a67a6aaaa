"""Server aggregate and the HTTP boundary."""
