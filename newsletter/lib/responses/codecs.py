from __future__ import annotations

from collections.abc import Iterable, Sequence

from starlette.responses import Response, StreamingResponse

from newsletter.lib.responses.types import HeaderPair, StoredResponse

HEADER_NAME_ENCODING = "latin-1"

HeaderRecord = tuple[str, bytes]


async def buffer_response(response: Response) -> StoredResponse:
    """Drain the response body and capture status, headers and bytes."""
    if isinstance(response, StreamingResponse):
        chunks: list[bytes] = []
        async for chunk in response.body_iterator:
            if isinstance(chunk, str):
                chunks.append(chunk.encode(response.charset))
            else:
                chunks.append(bytes(chunk))
        body = b"".join(chunks)
    else:
        body = bytes(response.body)

    return StoredResponse(
        status_code=response.status_code,
        headers=tuple(
            HeaderPair(name=name.decode(HEADER_NAME_ENCODING), value=bytes(value))
            for name, value in response.raw_headers
        ),
        body=body,
    )


def build_response(stored: StoredResponse) -> Response:
    response = Response(content=stored.body, status_code=stored.status_code)
    # Replace the computed defaults so the replay carries exactly the stored list.
    response.raw_headers = [(pair.name.encode(HEADER_NAME_ENCODING), pair.value) for pair in stored.headers]
    return response


def encode_header_records(stored: StoredResponse) -> list[HeaderRecord]:
    return [(pair.name, pair.value) for pair in stored.headers]


def decode_stored_response(
    *,
    status_code: int,
    headers: Iterable[Sequence[object]] | None,
    body: bytes | None,
) -> StoredResponse:
    pairs: list[HeaderPair] = []
    for record in headers or ():
        name, value = record[0], record[1]
        if not isinstance(name, str) or not isinstance(value, (bytes, bytearray, memoryview)):
            raise ValueError("stored header pair must be (str, bytes)")
        pairs.append(HeaderPair(name=name, value=bytes(value)))
    return StoredResponse(status_code=status_code, headers=tuple(pairs), body=bytes(body or b""))
