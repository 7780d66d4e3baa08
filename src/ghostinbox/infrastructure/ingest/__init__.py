from .message_parser import (
    ParsedMessage,
    parse_message,
    extract_address,
    extract_origin_ip,
    is_private_ip,
)

__all__ = [
    "ParsedMessage",
    "parse_message",
    "extract_address",
    "extract_origin_ip",
    "is_private_ip",
]
