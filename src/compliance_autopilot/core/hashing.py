"""
Deterministic fingerprints for content-addressed caching.

The response cache is keyed by *what was asked*, not by an arbitrary id:
the same source file analysed for the same framework must map to the same
key across calls, and the same file under a different framework must not.

Manifesto:
    - **Deterministic:** Same inputs always produce the same fingerprint
    - **Namespaced:** ``(payload, "soc2")`` and ``(payload, "gdpr")`` differ
    - **Type-tagged:** ``"1"`` and ``1`` do not collide, as values or as mapping keys
    - **Order-free mappings:** dict key order never changes a key, and keys
      of mixed types are fine
    - **SHA-256 based:** Collisions are not a practical concern

Encoding:
    Every value is written as a tag plus its content. Strings and bytes are
    length-prefixed, so concatenated encodings never re-split differently.
    Mapping items and set members are sorted by their *encoded* bytes.

Examples:
    >>> fingerprint("def handler(): ...", "soc2") == fingerprint("def handler(): ...", "soc2")
    True
    >>> fingerprint("def handler(): ...", "soc2") == fingerprint("def handler(): ...", "gdpr")
    False
    >>> canonical_bytes({1: "x"}) == canonical_bytes({"1": "x"})
    False

Tags:
    hashing, fingerprint, cache-key, deduplication
"""

import dataclasses
import hashlib
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any


def _sized(tag: bytes, data: bytes) -> bytes:
    return tag + str(len(data)).encode() + b":" + data


def canonical_bytes(payload: Any) -> bytes:
    """Type-tagged canonical encoding of a cache payload."""
    if payload is None:
        return b"n"
    if isinstance(payload, bool):
        return b"t" if payload else b"f"
    if isinstance(payload, int):
        return _sized(b"i", str(payload).encode())
    if isinstance(payload, float):
        return _sized(b"d", repr(payload).encode())
    if isinstance(payload, str):
        return _sized(b"s", payload.encode("utf-8"))
    if isinstance(payload, (bytes, bytearray)):
        return _sized(b"b", bytes(payload))
    if isinstance(payload, datetime):
        return _sized(b"T", payload.isoformat().encode())
    if isinstance(payload, date):
        return _sized(b"D", payload.isoformat().encode())
    if isinstance(payload, Mapping):
        items = sorted(canonical_bytes(k) + canonical_bytes(v) for k, v in payload.items())
        return b"{" + b"".join(items) + b"}"
    if isinstance(payload, (list, tuple)):
        return b"[" + b"".join(canonical_bytes(item) for item in payload) + b"]"
    if isinstance(payload, (set, frozenset)):
        return b"<" + b"".join(sorted(canonical_bytes(item) for item in payload)) + b">"
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        name = type(payload).__qualname__.encode()
        return _sized(b"c", name) + canonical_bytes(dataclasses.asdict(payload))
    if hasattr(payload, "model_dump"):
        name = type(payload).__qualname__.encode()
        return _sized(b"m", name) + canonical_bytes(payload.model_dump(mode="json"))
    return _sized(b"r", str(payload).encode("utf-8"))


def fingerprint(payload: Any, namespace: str, *, length: int = 64) -> str:
    """
    One-way fingerprint of ``payload`` under an operation ``namespace``.

    The namespace is encoded with the same length-prefixed scheme ahead of
    the payload, so no ``(payload, namespace)`` pair can be re-split into
    another one.

    Args:
        payload: Request content (source code, prompt, structured query)
        namespace: Operation namespace (framework name, endpoint, model)
        length: Hex digest length (default 64 = full SHA-256)

    Returns:
        Hex string of specified length
    """
    digest = hashlib.sha256()
    digest.update(canonical_bytes(namespace))
    digest.update(canonical_bytes(payload))
    return digest.hexdigest()[:length]


__all__ = [
    "canonical_bytes",
    "fingerprint",
]
