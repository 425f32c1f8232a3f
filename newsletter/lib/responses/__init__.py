from newsletter.lib.responses.codecs import (
    buffer_response,
    build_response,
    decode_stored_response,
    encode_header_records,
)
from newsletter.lib.responses.types import HeaderPair, StoredResponse

__all__ = [
    "HeaderPair",
    "StoredResponse",
    "buffer_response",
    "build_response",
    "decode_stored_response",
    "encode_header_records",
]
