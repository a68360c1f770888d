"""
Magnet link parsing and stable identity extraction.

A torrent's stable key is derived once, at add time, from the magnet's
exact-topic (xt) parameters:

- urn:btih: 20-byte SHA-1 info hash, as 40 hex chars or as base32
- urn:btmh: sha-256 multihash ("1220" prefix) followed by 64 hex chars

Both forms produce a lowercase hex key. A magnet may repeat the same
resource under several hash schemes; the first xt that decodes wins.
"""

import base64
import binascii
import re
from typing import List, Optional
from urllib.parse import parse_qs

from .logger import logger


BTIH_PREFIX = "urn:btih:"
BTMH_PREFIX = "urn:btmh:"
SHA256_MULTIHASH_PREFIX = "1220"

HEX_40_PATTERN = re.compile(r"^[0-9a-fA-F]{40}$")
HEX_64_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")
BASE32_ALPHABET_PATTERN = re.compile(r"^[A-Z2-7]+$")


def _query_params(magnet_uri: str) -> dict:
    if "?" not in magnet_uri:
        return {}
    return parse_qs(magnet_uri.strip().split("?", 1)[1])


def _parse_btih(xt: str) -> Optional[str]:
    if not xt.lower().startswith(BTIH_PREFIX):
        return None
    raw = xt[len(BTIH_PREFIX):].strip()

    if HEX_40_PATTERN.match(raw):
        return raw.lower()

    # Otherwise assume base32 (RFC 4648); padding is optional in magnets
    cleaned = raw.upper().rstrip("=")
    if not cleaned or not BASE32_ALPHABET_PATTERN.match(cleaned):
        return None
    padded = cleaned + "=" * (-len(cleaned) % 8)
    try:
        data = base64.b32decode(padded)
    except (binascii.Error, ValueError):
        return None

    if len(data) != 20:
        return None
    return data.hex()


def _parse_btmh(xt: str) -> Optional[str]:
    if not xt.lower().startswith(BTMH_PREFIX):
        return None
    raw = xt[len(BTMH_PREFIX):].strip().lower()

    if not raw.startswith(SHA256_MULTIHASH_PREFIX):
        return None
    digest = raw[len(SHA256_MULTIHASH_PREFIX):]
    if HEX_64_PATTERN.match(digest):
        return digest
    return None


def exact_topics(magnet_uri: str) -> List[str]:
    """Return every xt value of the magnet, in order."""
    return _query_params(magnet_uri).get("xt", [])


def derive_key(magnet_uri: str) -> Optional[str]:
    """
    Derive the restart-stable key for a magnet URI.

    Returns the lowercase hex info hash (40 chars) or sha-256 digest
    (64 chars) of the first exact topic that decodes, or None when the
    magnet carries no recognisable xt.
    """
    if not magnet_uri:
        return None

    for xt in exact_topics(magnet_uri):
        key = _parse_btih(xt) or _parse_btmh(xt)
        if key:
            return key
    return None


def key_for_magnet(magnet_uri: str) -> str:
    """
    Derive a key, falling back to the raw trimmed magnet text.

    The fallback is not restart-stable: reordering tracker parameters
    yields a different identity.
    """
    key = derive_key(magnet_uri)
    if key:
        return key

    fallback = magnet_uri.strip()
    logger.warning(f"No usable info hash in magnet, using raw magnet as key: {fallback[:80]}")
    return fallback


def is_magnet(text: str) -> bool:
    return bool(text) and text.strip().lower().startswith("magnet:")


class MagnetLink:
    def __init__(self, magnet_uri):
        self.magnet_uri = magnet_uri.strip()
        self.parse_magnet_uri()

    def parse_magnet_uri(self):
        params = _query_params(self.magnet_uri)

        self.exact_topics = params.get("xt", [])
        self.stable_id = derive_key(self.magnet_uri)
        self.name = params.get("dn", [None])[0]
        self.trackers = params.get("tr", [])
        try:
            self.size = int(params.get("xl", [0])[0])
        except ValueError:
            self.size = 0

    @property
    def key(self) -> str:
        """Stable id, or the raw magnet when no hash could be derived."""
        return self.stable_id or self.magnet_uri

    def display_name(self) -> str:
        return self.name or self.key
