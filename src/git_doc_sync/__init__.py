"""git-doc-sync: keep a locally edited document in sync with its git remote."""

__version__ = "0.3.0"
