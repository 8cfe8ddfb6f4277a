"""Request body encoding and response body decoding.

Request bodies are a closed set of shapes chosen by the caller:

* ``Empty()`` sends nothing, with ``Content-Length: 0``.
* ``Document({...})`` sends a binary property list.
* ``TextParams("key: value\\n...")`` sends ``text/parameters``.

Response and event bodies are decoded according to the declared content
type. Unknown content types are passed through as raw bytes.
"""

import logging
import math
import plistlib
from dataclasses import dataclass, field
from typing import Any, Optional, Union
from xml.parsers.expat import ExpatError

from .errors import BodyDecodeError

logger = logging.getLogger(__name__)

BINARY_PLIST = "application/x-apple-binary-plist"
XML_PLIST = "text/x-apple-plist+xml"
EVENT_PLIST = "application/x-apple-plist"
TEXT_PARAMETERS = "text/parameters"

EVENT_PLIST_TYPES = frozenset({XML_PLIST, EVENT_PLIST})


@dataclass(frozen=True)
class Empty:
    """No request body."""


@dataclass(frozen=True)
class Document:
    """A keyed document sent as a binary property list."""

    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TextParams:
    """A flat ``key: value`` parameter block sent as plain text."""

    text: str = ""


Body = Union[Empty, Document, TextParams]


def encode(body: Body) -> tuple[bytes, Optional[str]]:
    """Encode a request body. Returns the payload and its content type."""
    if isinstance(body, Document):
        return plistlib.dumps(body.data, fmt=plistlib.FMT_BINARY), BINARY_PLIST
    if isinstance(body, TextParams):
        return body.text.encode(), TEXT_PARAMETERS
    if isinstance(body, Empty):
        return b"", None
    raise TypeError(f"Unsupported body type: {type(body).__name__}")


def _parse_plist(buffer: bytes, fmt=None) -> Any:
    try:
        return plistlib.loads(buffer, fmt=fmt)
    except (ValueError, ExpatError) as e:
        raise BodyDecodeError(f"Malformed property list: {e}") from e


def parse_parameters(text: str) -> dict[str, float]:
    """Parse ``key: value`` lines into floats; unparsable values become NaN."""
    params = {}
    for line in text.strip().split("\n"):
        if not line.strip():
            continue
        key, _, value = line.partition(": ")
        try:
            params[key] = float(value)
        except ValueError:
            params[key] = math.nan
    return params


def decode(buffer: bytes, content_type: Optional[str]) -> Any:
    """Decode a response body according to its content type."""
    if content_type == BINARY_PLIST:
        return _parse_plist(buffer, fmt=plistlib.FMT_BINARY)
    if content_type == XML_PLIST:
        return _parse_plist(buffer, fmt=plistlib.FMT_XML)
    if content_type == TEXT_PARAMETERS:
        return parse_parameters(buffer.decode(errors="replace"))
    return buffer


def decode_event(buffer: bytes, content_type: Optional[str]) -> Optional[Any]:
    """Decode an event pushed over the reverse channel.

    Returns None when the content type is not a property list, or when the
    property list is malformed. Events never raise.
    """
    if content_type not in EVENT_PLIST_TYPES:
        return None
    try:
        return _parse_plist(buffer)
    except BodyDecodeError as e:
        logger.warning("Ignoring malformed event body: %s", e)
        return None
