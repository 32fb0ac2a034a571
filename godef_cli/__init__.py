"""godef: go to definition for Go identifiers and import paths."""

__version__ = "0.1.0"
