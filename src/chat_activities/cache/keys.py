"""
Deterministic cache key generation.

Keys are SHA-256 digests of a canonical JSON descriptor of the request, so the
same request always maps to the same entry regardless of dict ordering.
"""

import hashlib
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from ..version import PROMPT_VERSION


def hash_content(content: Union[str, bytes]) -> str:
    """
    SHA-256 hex digest of raw input.

    Examples:
        >>> hash_content("hello") == hash_content(b"hello")
        True
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def hash_file_identity(path: Union[str, Path]) -> str:
    """
    SHA-256 of a file's name and modification time.

    Cheaper than hashing the content of large exports; touching the file
    produces a new run.
    """
    path = Path(path)
    mtime_ms = int(os.stat(path).st_mtime * 1000)
    return hashlib.sha256(f"{path.name}:{mtime_ms}".encode("utf-8")).hexdigest()


def sanitize_name(name: str, max_length: int = 50) -> str:
    """
    Make a filename safe to use as a directory name.

    Examples:
        >>> sanitize_name("WhatsApp Chat - Trip.zip")
        'WhatsApp_Chat_-_Trip'
    """
    name = re.sub(r"\.(zip|txt)$", "", name, flags=re.IGNORECASE)
    name = re.sub(r"[^a-zA-Z0-9_-]", "_", name)
    name = re.sub(r"_+", "_", name).strip("_")
    return name[:max_length] or "input"


def generate_cache_key(descriptor: Dict[str, Any]) -> str:
    """
    Cache key for an arbitrary request descriptor.

    Args:
        descriptor: JSON-serializable request identity (endpoint + params)

    Returns:
        Hex SHA-256 of the canonical JSON encoding
    """
    canonical = json.dumps(descriptor, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def url_cache_key(url: str) -> str:
    return generate_cache_key({"type": "scrape", "url": url})


def classifier_cache_key(provider: str, model: str, prompt: str) -> str:
    """Key for one classification call; the prompt is hashed, not stored."""
    return generate_cache_key(
        {
            "type": "classify",
            "provider": provider,
            "model": model,
            "prompt_version": PROMPT_VERSION,
            "prompt_sha256": hash_content(prompt),
        }
    )


def embedding_cache_key(model: str, texts: Iterable[str]) -> str:
    return generate_cache_key(
        {
            "type": "embeddings",
            "model": model,
            "texts_sha256": hash_content("\x1e".join(texts)),
        }
    )


def geocode_cache_key(query: str, region: Optional[str] = None) -> str:
    return generate_cache_key(
        {"type": "geocode", "query": query.strip().lower(), "region": region}
    )
