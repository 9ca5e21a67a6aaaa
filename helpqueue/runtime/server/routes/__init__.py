"""HTTP route classes.  Each exposes ``register(router)``."""
