from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class HeaderPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Lower-cased header name as emitted on the wire.
    name: str = Field(min_length=1)
    # Raw value bytes; never decoded so non-ASCII values replay byte-exact.
    value: bytes


class StoredResponse(BaseModel):
    """Replayable snapshot of a fully buffered HTTP response.

    Headers stay an ordered list rather than a mapping: HTTP allows repeated
    names (set-cookie, link, ...) and a replay must reproduce them in order.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int = Field(ge=100, le=599)
    headers: tuple[HeaderPair, ...] = ()
    body: bytes = b""
