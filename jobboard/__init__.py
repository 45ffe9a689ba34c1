"""Jobs table schema, migrations and storage helpers."""

__version__ = "0.1.0"
