import base64
from typing import Tuple
from urllib.parse import unquote_to_bytes

from gaikit.ai.types import Part
from gaikit.core.errors import GaikitError


def data(part: Part) -> Tuple[str, bytes]:
    """
    Decode the data: URI of a media part.

    Args:
        part: A media part whose url is a data: URI

    Returns:
        Tuple of (content type, decoded bytes)
    """
    if not part.is_media():
        raise GaikitError("uri.data: part is not media")
    url = part.media.url
    if not url.startswith("data:"):
        raise GaikitError(f"uri.data: unsupported media url {url[:32]!r}")
    header, sep, payload = url[len("data:"):].partition(",")
    if not sep:
        raise GaikitError("uri.data: malformed data URI, missing ','")

    content_type = part.media.content_type
    params = header.split(";")
    if not content_type:
        content_type = params[0]
    if "base64" in params[1:]:
        try:
            return content_type, base64.b64decode(payload, validate=True)
        except ValueError as e:
            raise GaikitError(f"uri.data: bad base64 payload: {e}") from e
    return content_type, unquote_to_bytes(payload)
