"""Identity projection sync and row-level access control."""

__version__ = "0.1.0"
