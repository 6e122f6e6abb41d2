"""
Signed request/response protocol core.

Exports:
- SignedRequest, SignedResponse, Session: wire and persisted models
- sign_request, verify_response, DigestSigner, DigestVerifier: signing scheme
- SessionStore and its backends: session continuity across runs
- TlsConnector, Transport, ReadPolicy, read_until_close: one-shot transport
- SessionProtocolClient, ExchangeState: the exchange state machine
"""

from .models import Session, SignedRequest, SignedResponse
from .signing import (
    DigestSigner,
    DigestVerifier,
    RequestSigner,
    ResponseVerifier,
    sign_request,
    verify_response,
)
from .session_store import (
    FileSessionBackend,
    MemorySessionBackend,
    SessionBackend,
    SessionStore,
)
from .transport import (
    ReadPolicy,
    TlsConnector,
    Transport,
    insecure_tls_context,
    parse_address,
    read_until_close,
)
from .wire import canonical_json, decode_response, encode_request, response_signing_bytes
from .client import ExchangeState, SessionProtocolClient

__all__ = [
    # Models
    'Session',
    'SignedRequest',
    'SignedResponse',
    # Signing
    'RequestSigner',
    'ResponseVerifier',
    'DigestSigner',
    'DigestVerifier',
    'sign_request',
    'verify_response',
    # Sessions
    'SessionBackend',
    'FileSessionBackend',
    'MemorySessionBackend',
    'SessionStore',
    # Transport
    'ReadPolicy',
    'TlsConnector',
    'Transport',
    'insecure_tls_context',
    'parse_address',
    'read_until_close',
    # Wire
    'canonical_json',
    'decode_response',
    'encode_request',
    'response_signing_bytes',
    # Exchange
    'ExchangeState',
    'SessionProtocolClient',
]
