"""Registry layout, atomic writes and the Documentation Writer."""
