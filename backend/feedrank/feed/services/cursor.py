"""Opaque feed cursors.

Cursors are HS256 JWTs signed with the cursor secret. Clients cannot edit them
without invalidating the signature, so a decoded cursor can be trusted to name a
position the pager itself minted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

import jwt

from feedrank.feed.domain.exceptions import MalformedCursor
from feedrank.settings import settings

CURSOR_VERSION = 2
AUDIENCE = "feedrank-cursor"


@dataclass(slots=True, frozen=True)
class SnapshotRef:
    """Identifies the candidate snapshot a scroll session ranks over."""

    kind: str
    pool_limit: int
    as_of: datetime

    @property
    def as_of_epoch(self) -> int:
        return int(self.as_of.timestamp())

    @property
    def snapshot_id(self) -> str:
        return f"{self.kind}:{self.pool_limit}:{self.as_of_epoch}"

    @property
    def pool_key(self) -> str:
        # both feed kinds rank the same bounded pool
        return f"{self.pool_limit}:{self.as_of_epoch}"


@dataclass(slots=True, frozen=True)
class CursorPosition:
    """Composite sort key of the last item served plus its id."""

    score: float
    created_us: int
    item_id: str


@dataclass(slots=True, frozen=True)
class ScoringBasis:
    """Scoring inputs pinned by the first page of a scroll session.

    Continuation pages score with the same normalization and must see the same
    interest profile, otherwise every score shifts and items slip past the cursor.
    """

    max_likes: int = 0
    profile_digest: str = ""


@dataclass(slots=True, frozen=True)
class DecodedCursor:
    snapshot: SnapshotRef
    position: CursorPosition
    basis: ScoringBasis
    version: int


def encode_cursor(
    snapshot: SnapshotRef,
    position: CursorPosition,
    basis: ScoringBasis | None = None,
    *,
    secret: str | None = None,
) -> str:
    basis = basis or ScoringBasis()
    body: Dict[str, Any] = {
        "aud": AUDIENCE,
        "v": CURSOR_VERSION,
        "k": snapshot.kind,
        "n": snapshot.pool_limit,
        "t": snapshot.as_of_epoch,
        "s": position.score,
        "c": position.created_us,
        "i": position.item_id,
        "m": basis.max_likes,
        "p": basis.profile_digest,
    }
    return jwt.encode(body, secret or settings.cursor_secret(), algorithm="HS256")


def decode_cursor(token: str, *, secret: str | None = None) -> DecodedCursor:
    """Decode a cursor produced by :func:`encode_cursor`.

    Raises MalformedCursor for anything that is not an intact cursor we minted.
    """
    if not token or not isinstance(token, str):
        raise MalformedCursor()
    try:
        payload = jwt.decode(
            token,
            secret or settings.cursor_secret(),
            algorithms=["HS256"],
            audience=AUDIENCE,
            options={"require": ["aud", "v", "k", "n", "t", "s", "c", "i"]},
        )
        snapshot = SnapshotRef(
            kind=str(payload["k"]),
            pool_limit=int(payload["n"]),
            as_of=datetime.fromtimestamp(int(payload["t"]), tz=timezone.utc),
        )
        position = CursorPosition(
            score=float(payload["s"]),
            created_us=int(payload["c"]),
            item_id=str(payload["i"]),
        )
        # version 1 cursors predate the basis claims and decode only to be reset
        basis = ScoringBasis(
            max_likes=int(payload.get("m", 0)),
            profile_digest=str(payload.get("p", "")),
        )
        version = int(payload["v"])
    except jwt.InvalidTokenError as exc:
        raise MalformedCursor() from exc
    except (KeyError, TypeError, ValueError, OverflowError) as exc:
        raise MalformedCursor() from exc
    if not position.item_id or snapshot.pool_limit < 1 or basis.max_likes < 0:
        raise MalformedCursor()
    return DecodedCursor(snapshot=snapshot, position=position, basis=basis, version=version)


__all__ = [
    "CURSOR_VERSION",
    "CursorPosition",
    "DecodedCursor",
    "ScoringBasis",
    "SnapshotRef",
    "decode_cursor",
    "encode_cursor",
]
