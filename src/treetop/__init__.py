"""treetop - resource accounting for a single process subtree."""

__version__ = "1.1.0"
