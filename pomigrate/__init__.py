"""Project Online to Smartsheet migration engine."""

__version__ = "0.1.0"
