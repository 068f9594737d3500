"""Text derivations and node id helpers."""

import re
import secrets
import string
import time

from nodespace.config import MAX_NODE_ID_LENGTH

_ID_ALPHABET = string.digits + string.ascii_lowercase
_FORBIDDEN_ID_CHARS = re.compile(r"[\s\x00-\x1f\x7f]")


def word_count(content: str) -> int:
    """Count whitespace-delimited tokens of the trimmed content."""
    return len(content.split())


def generate_node_id(prefix: str = "text") -> str:
    """Return an id like ``text-1718000000000-k3j9x0a``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def is_valid_node_id(node_id: object) -> bool:
    """Check that node_id is a non-empty string usable as a key."""
    if not isinstance(node_id, str) or not node_id:
        return False
    if len(node_id) > MAX_NODE_ID_LENGTH:
        return False
    return _FORBIDDEN_ID_CHARS.search(node_id) is None
