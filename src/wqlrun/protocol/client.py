"""
Signed request/response exchange over a one-shot transport.

State machine per exchange::

    IDLE -> SIGNING -> SENDING -> AWAITING_RESPONSE -> VERIFYING -> UPDATED
      \\________\\__________\\_____________\\________________\\-> FAILED

A response whose signature does not verify is never returned. After
UPDATED or FAILED the transport is spent and closed.
"""

from __future__ import annotations

import logging
import time
import uuid
from enum import Enum
from typing import Callable, Optional

from ..errors import NetworkError, SignatureError, TransportSpentError
from .models import Session, SignedRequest, SignedResponse
from .session_store import SessionStore
from .signing import RequestSigner, ResponseVerifier
from .transport import ReadPolicy, Transport, read_until_close
from .wire import decode_response, encode_request, response_signing_bytes


class ExchangeState(Enum):
    IDLE = "IDLE"
    SIGNING = "SIGNING"
    SENDING = "SENDING"
    AWAITING_RESPONSE = "AWAITING_RESPONSE"
    VERIFYING = "VERIFYING"
    UPDATED = "UPDATED"
    FAILED = "FAILED"


def _uuid4_nonce() -> str:
    return str(uuid.uuid4())


class SessionProtocolClient:
    """
    Performs one signed exchange per call, carrying the session forward.

    The persisted session is loaded once at construction; each successful
    exchange replaces it with the session the server returned and persists
    it before the response is handed back.

    Args:
        client_id: Identity sent with (and signed into) every request
        signer: Signs outbound requests with the client secret
        verifier: Verifies inbound responses with the server secret
        session_store: Loads/saves the continuity record
        read_policy: Chunk size and optional bounds for the response read
        on_progress: Receives the cumulative byte count while reading
        clock: Returns epoch seconds
        nonce_factory: Returns a fresh, unique nonce per request
    """

    def __init__(
        self,
        client_id: str,
        signer: RequestSigner,
        verifier: ResponseVerifier,
        session_store: SessionStore,
        read_policy: Optional[ReadPolicy] = None,
        on_progress: Optional[Callable[[int], None]] = None,
        clock: Callable[[], float] = time.time,
        nonce_factory: Callable[[], str] = _uuid4_nonce,
    ):
        self.client_id = client_id
        self.signer = signer
        self.verifier = verifier
        self.session_store = session_store
        self.read_policy = read_policy or ReadPolicy()
        self.on_progress = on_progress
        self.clock = clock
        self.nonce_factory = nonce_factory
        self.state = ExchangeState.IDLE
        self._session: Optional[Session] = session_store.load(client_id)

    @property
    def session(self) -> Optional[Session]:
        return self._session

    def _enter(self, state: ExchangeState) -> None:
        logging.debug("Exchange %s -> %s", self.state.value, state.value)
        self.state = state

    def build_request(self, payload: str, timestamp: int, nonce: str) -> SignedRequest:
        self._enter(ExchangeState.SIGNING)
        return SignedRequest(
            client_id=self.client_id,
            timestamp=timestamp,
            nonce=nonce,
            signature=self.signer.sign(self.client_id, timestamp, nonce),
            session_id=self._session.session_id if self._session else None,
            payload=payload,
        )

    async def exchange(self, transport: Transport, payload: str) -> SignedResponse:
        """Send ``payload`` over ``transport`` and return the verified response.

        Raises:
            TransportSpentError: ``transport`` already carried an exchange
            NetworkError: Write or read failed
            ConnectionClosedEarly: Peer closed without sending anything
            ParseError: Response is not a well-formed message
            SignatureError: Response signature mismatch
            IoError: Session could not be persisted
        """
        if transport.spent:
            raise TransportSpentError()
        transport.spent = True
        self.state = ExchangeState.IDLE
        try:
            response = await self._run(transport, payload)
        except Exception:
            self._enter(ExchangeState.FAILED)
            raise
        finally:
            await transport.close()
        return response

    async def _run(self, transport: Transport, payload: str) -> SignedResponse:
        timestamp = int(self.clock())
        nonce = self.nonce_factory()
        request = self.build_request(payload, timestamp, nonce)

        self._enter(ExchangeState.SENDING)
        logging.info("Sending request to %s (nonce %s)", transport.peer, nonce)
        try:
            await transport.write_all(encode_request(request))
        except OSError as e:
            raise NetworkError(f"Failed to send request: {e}", e) from e

        self._enter(ExchangeState.AWAITING_RESPONSE)
        logging.info("Waiting for response...")
        raw = await read_until_close(transport, self.read_policy, self.on_progress)
        response = decode_response(raw)

        self._enter(ExchangeState.VERIFYING)
        if not self.verifier.verify(response_signing_bytes(response), response.signature):
            raise SignatureError()

        session = Session(
            session_id=response.session_id,
            client_id=self.client_id,
            created_at=timestamp,
            last_used=timestamp,
        )
        self.session_store.save(session)
        self._session = session
        self._enter(ExchangeState.UPDATED)
        return response


__all__ = ["ExchangeState", "SessionProtocolClient"]
