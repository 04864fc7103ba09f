"""
Anchored Notes - repository notes anchored to file and directory paths.
This package stores short knowledge snippets next to a repository, retrieves
them by path, keeps a small tag vocabulary, and audits how much of the file
tree the notes cover.

All operations are synchronous and read the on-disk state at call time.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("anchored-notes")
except PackageNotFoundError:
    __version__ = "0.3.0"
