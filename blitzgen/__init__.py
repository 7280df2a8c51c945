"""blitzgen -- create a new Blitzpack project from the upstream template."""

__version__ = "0.1.0"
