"""Extension based content-type resolution.

Object stores frequently report the wrong type (or the generic binary one)
for uploaded media, so the gateway decides what a client should render an
object as. The resolved type overrides anything the backend reports, both
when storing and when streaming an object.
"""

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: dict[str, str] = {
    # Video
    "mp4": "video/mp4",
    "m4v": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "mkv": "video/x-matroska",
    "avi": "video/x-msvideo",
    # Audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "avif": "image/avif",
    "bmp": "image/bmp",
    "ico": "image/x-icon",
    # Documents
    "pdf": "application/pdf",
    "txt": "text/plain",
    "md": "text/markdown",
    "csv": "text/csv",
    # Web text
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "text/javascript",
    "mjs": "text/javascript",
    "json": "application/json",
    "xml": "application/xml",
}


def get_extension(filename: str) -> str:
    """Return the lower-cased extension of the last path segment, or ''."""
    name = filename.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def resolve_mime_type(filename: str) -> str:
    """
    Map a filename (or full object key) to its canonical content type.

    Example:
        >>> resolve_mime_type("clips/Movie.MP4")
        'video/mp4'
        >>> resolve_mime_type("README")
        'application/octet-stream'
    """
    return MIME_TYPES.get(get_extension(filename), DEFAULT_MIME_TYPE)
