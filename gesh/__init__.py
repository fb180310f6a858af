"""GESH - gateway for storing and syncing opaque encrypted blobs."""

__version__ = "0.1.0"
