"""
MAC address validation and normalization.
"""

import re

# Six hex pairs separated by ':' or '-', or three dot-separated quads (Cisco form)
_PAIRS_RE = re.compile(r"[0-9A-Fa-f]{2}([:-])(?:[0-9A-Fa-f]{2}\1){4}[0-9A-Fa-f]{2}")
_QUADS_RE = re.compile(r"[0-9A-Fa-f]{4}\.[0-9A-Fa-f]{4}\.[0-9A-Fa-f]{4}")


def is_valid_mac(mac: str) -> bool:
    """Check whether a string is a syntactically valid MAC address."""
    if not mac:
        return False
    return bool(_PAIRS_RE.fullmatch(mac) or _QUADS_RE.fullmatch(mac))


def normalize_mac(mac: str) -> str:
    """Canonical key form: lower-cased, separators untouched."""
    return mac.strip().lower()
