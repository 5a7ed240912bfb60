from __future__ import annotations

"""
Audit hashing helpers.

Provides:
- canonical_json_bytes(obj) -> stable serialization for hashing
- sha256_hex(bytes)
- chain_hash(prev_hash, record) -> hash linking one event to the previous one
- state_hash(state_dict) -> fingerprint of a persisted snapshot
- merkle_root(list_of_hex_strings)

Goal:
- Make the event log and persisted snapshots independently verifiable.
"""

import hashlib
import json
from typing import Any, Dict, Iterable, List

GENESIS_HASH: str = "0" * 64


def canonical_json_bytes(obj: Any) -> bytes:
    # Canonical JSON for hashing: stable sort + compact separators
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def chain_hash(prev_hash: str, record: Dict[str, Any]) -> str:
    return sha256_hex(prev_hash.encode("ascii") + canonical_json_bytes(record))


def state_hash(state: Dict[str, Any]) -> str:
    stable = dict(state)
    stable.pop("state_hash", None)
    return sha256_hex(canonical_json_bytes(stable))


def verify_chain(records: Iterable[Dict[str, Any]]) -> bool:
    """
    Recompute the hash chain over serialized events.

    Each record must carry ``hash`` and ``prev_hash``; the body that was
    hashed is everything else.
    """
    prev = GENESIS_HASH
    for rec in records:
        if rec.get("prev_hash") != prev:
            return False
        body = {k: v for k, v in rec.items() if k not in ("hash", "prev_hash")}
        if chain_hash(prev, body) != rec.get("hash"):
            return False
        prev = str(rec["hash"])
    return True


def _hash_pair(a: bytes, b: bytes) -> bytes:
    return hashlib.sha256(a + b).digest()


def merkle_root(hex_leaves: List[str]) -> str:
    """
    Merkle root over hex digests.
    - Tree is built by hashing pairs; odd leaf is duplicated.
    - Returns hex digest.
    """
    leaves = [x.strip().lower() for x in (hex_leaves or []) if isinstance(x, str) and x.strip()]
    if not leaves:
        return sha256_hex(b"")

    level = [hashlib.sha256(bytes.fromhex(x)).digest() for x in leaves]

    while len(level) > 1:
        nxt = []
        i = 0
        while i < len(level):
            left = level[i]
            right = level[i + 1] if (i + 1) < len(level) else left
            nxt.append(_hash_pair(left, right))
            i += 2
        level = nxt

    return level[0].hex()
