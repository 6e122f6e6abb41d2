"""Wire encoding for the one-shot request/response exchange.

Both directions carry a single compact JSON document with no length prefix
and no delimiter; the receiver knows the message is complete when the peer
closes the connection.

Canonical form (what the server signs and what we hash to verify it):
  * Members in model declaration order (not sorted).
  * Separators ``,`` and ``:`` with no insignificant whitespace.
  * Non-ASCII characters emitted verbatim as UTF-8.
  * Only quotation mark, reverse solidus and control characters escaped,
    using the short forms (``\\n``, ``\\t``...) where they exist and
    lowercase ``\\u00XX`` otherwise.

That is exactly ``json.dumps(..., separators=(",", ":"), ensure_ascii=False)``
and byte-identical to the peer's serializer, which is what makes signature
verification interoperable.
"""
from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from ..errors import ParseError
from .models import SignedRequest, SignedResponse


def canonical_json(obj: dict[str, Any]) -> bytes:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def encode_request(request: SignedRequest) -> bytes:
    return canonical_json(request.model_dump(by_alias=True))


def decode_response(raw: bytes) -> SignedResponse:
    """Parse the collected response bytes.

    Unknown members are ignored; anything else that does not fit the
    response shape raises ``ParseError``.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"Invalid UTF-8 sequence: {e}") from e
    try:
        return SignedResponse.model_validate_json(text)
    except ValidationError as e:
        raise ParseError(f"Malformed response: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e


def response_signing_bytes(response: SignedResponse) -> bytes:
    """Canonical bytes of ``response`` with its signature field cleared."""
    core = response.model_dump()
    core["signature"] = ""
    return canonical_json(core)


__all__ = ["canonical_json", "encode_request", "decode_response", "response_signing_bytes"]
