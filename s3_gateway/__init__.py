"""S3 File Gateway: a browsable file manager API over an S3-compatible store."""

__version__ = "0.1.0"
