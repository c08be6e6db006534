"""Catalog, hash, group and mirror versioned data files from remote storage."""

__version__ = "0.1.0"
