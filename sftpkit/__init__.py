"""SFTP packet encoding and framing, response ordering, path matching and an in-memory filesystem."""

__version__ = "0.1.0"