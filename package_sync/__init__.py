"""
Package Sync — Propagate shared package directories from a source
repository to the repositories that depend on them, one pull request
per target.
"""

__version__ = "0.3.0"
