"""Static documentation-site generator for the frontend interview study notes."""

__version__ = "0.1.0"
