"""
.. include:: ../README.md
"""

__all__ = [
    "identity",
    "values",
    "manifest",
    "image",
    "selector",
    "exceptions",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
