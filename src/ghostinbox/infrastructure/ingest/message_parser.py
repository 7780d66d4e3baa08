"""Best-effort parser for raw messages handed over by the MTA.

Splits a raw message into headers and body and extracts the two things the
relay needs from headers: bare addresses and the originating IP. Parsing
never raises; missing or malformed headers yield empty values downstream.

This is deliberately not an RFC 5322 parser. The relay only reads a handful
of headers and rewrites the rest itself.
"""

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)


PRIVATE_NETWORKS = (
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
)

_DOTTED_QUAD = r"(\d{1,3}(?:\.\d{1,3}){3})"
_FROM_KEYWORD = re.compile(r"\bfrom\b", re.IGNORECASE)
_BRACKETED_IP = re.compile(r"\[" + _DOTTED_QUAD + r"\]")
_PARENTHESIZED_IP = re.compile(r"\(" + _DOTTED_QUAD + r"\)")
_BARE_IP = re.compile(r"(?<![\d.])" + _DOTTED_QUAD + r"(?![\d.])")

_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")
_BARE_ADDRESS = re.compile(r"([^\s<>]+@[^\s<>]+)")

HeaderSource = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


@dataclass
class ParsedMessage:
    """Headers and body of a raw message.

    Attributes:
        headers: Header name (as received) to value; on duplicates the first
            occurrence is kept
        body: Everything after the first blank line, LF-joined
        header_items: Every (name, value) pair in received order, duplicates
            included (several Received headers are the norm)
    """
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    header_items: List[Tuple[str, str]] = field(default_factory=list)

    def get(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup; first occurrence wins."""
        return get_header(self.header_items, name, default)


def get_header(headers: HeaderSource, name: str, default: str = "") -> str:
    """Look up a header by name regardless of the casing it was received in."""
    wanted = name.lower()
    for key, value in _iter_items(headers):
        if key.lower() == wanted:
            return value
    return default


def parse_message(raw: str) -> ParsedMessage:
    """Split a raw message into headers and body.

    The header block ends at the first blank line. A line starting with
    whitespace continues the preceding header and is joined to it with a
    single space. Lines without a colon are skipped.

    Args:
        raw: Raw message text with CRLF or LF line endings

    Returns:
        ParsedMessage: Parsed headers and body
    """
    lines = re.split(r"\r?\n", raw or "")
    items: List[List[str]] = []
    index = 0

    while index < len(lines):
        line = lines[index]
        index += 1
        if line == "":
            break
        if line[0] in " \t":
            if items:
                items[-1][1] = f"{items[-1][1]} {line.strip()}"
            continue
        colon = line.find(":")
        if colon == -1:
            logger.debug(f"Skipping malformed header line: {line[:80]!r}")
            continue
        items.append([line[:colon].strip(), line[colon + 1:].strip()])

    header_items = [(key, value) for key, value in items]
    headers: Dict[str, str] = {}
    for key, value in header_items:
        headers.setdefault(key, value)

    return ParsedMessage(
        headers=headers,
        body="\n".join(lines[index:]),
        header_items=header_items,
    )


def extract_address(header_value: Optional[str]) -> str:
    """Extract a bare address from a header value.

    Examples:
        'Jane Doe <jane@example.org>' -> 'jane@example.org'
        'jane@example.org (Jane)' -> 'jane@example.org'
        'undisclosed-recipients' -> 'undisclosed-recipients'

    Returns:
        str: Address inside the first angle brackets, else the first
            local@domain substring, else the trimmed value ('' for None)
    """
    if not header_value:
        return ""
    match = _ANGLE_ADDRESS.search(header_value) or _BARE_ADDRESS.search(header_value)
    if match:
        return match.group(1).strip()
    return header_value.strip()


def is_private_ip(ip: str) -> bool:
    """True for loopback and RFC 1918 IPv4 addresses."""
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(address in network for network in PRIVATE_NETWORKS)


def extract_origin_ip(headers: HeaderSource) -> Optional[str]:
    """Find the first public IP in the Received chain.

    Received headers are scanned in header order, and each header yields at
    most one address: the first one after `from` in square brackets, else
    the first in parentheses, else the first bare dotted quad. Addresses in
    the `by` clause are never considered on their own. When a header's
    address is private or malformed the scan moves on to the next header,
    so a relay hop on the local network never masks the external sender.

    Args:
        headers: Mapping or (name, value) pairs; pass
            ParsedMessage.header_items to see every Received header

    Returns:
        Optional[str]: Origin IP, or None if no header yields a public one
    """
    for name, value in _iter_items(headers):
        if name.lower() != "received":
            continue
        candidate = _received_from_ip(value)
        if candidate and _is_valid_ipv4(candidate) and not is_private_ip(candidate):
            return candidate
    return None


def _received_from_ip(received: str) -> Optional[str]:
    """The one candidate address of a Received header, or None."""
    from_match = _FROM_KEYWORD.search(received)
    if not from_match:
        return None
    after_from = received[from_match.end():]
    for pattern in (_BRACKETED_IP, _PARENTHESIZED_IP, _BARE_IP):
        match = pattern.search(after_from)
        if match:
            return match.group(1)
    return None


def _is_valid_ipv4(candidate: str) -> bool:
    try:
        ipaddress.IPv4Address(candidate)
    except ValueError:
        return False
    return True


def _iter_items(headers: HeaderSource) -> Iterable[Tuple[str, str]]:
    if isinstance(headers, Mapping):
        return headers.items()
    return headers
