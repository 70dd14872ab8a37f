"""notectx - budgeted context assembly for hierarchical note graphs."""

__version__ = "0.1.0"
