"""
Helpers for reading viewer details out of a Socket.IO handshake
"""
from typing import Optional
from urllib.parse import parse_qs

from .state import UNKNOWN_REFERRER


def handshake_identifier(environ: dict) -> Optional[str]:
    """Return the `id` query parameter of the handshake, or None"""
    query_string = environ.get("QUERY_STRING", "")
    if isinstance(query_string, (bytes, bytearray)):
        query_string = query_string.decode(errors="ignore")

    identifier = parse_qs(str(query_string)).get("id", [None])[0]
    if isinstance(identifier, str) and identifier:
        return identifier
    return None


def handshake_referrer(environ: dict) -> str:
    """Return the Referer header of the handshake, or "Unknown" """
    return environ.get("HTTP_REFERER") or UNKNOWN_REFERRER
