"""Shared fakes: scripted streams standing in for a TLS connection."""

import asyncio
from typing import Callable, List, Union

import pytest

from wqlrun.protocol import SignedResponse, Transport, canonical_json, response_signing_bytes
from wqlrun.protocol.signing import digest_b64

SERVER_KEY = "server_key"
CLIENT_KEY = "test_key_1"


class ScriptedReader:
    """Returns one scripted item per read(): bytes, or raises an exception item.

    Once the script is exhausted every read returns b"" (peer closed).
    """

    def __init__(self, script: List[Union[bytes, BaseException]]):
        self.script = list(script)
        self.reads = 0

    async def read(self, n: int) -> bytes:
        self.reads += 1
        if not self.script:
            return b""
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        assert len(item) <= n
        return item


class FakeWriter:
    def __init__(self, fail_with: BaseException | None = None):
        self.data = bytearray()
        self.closed = False
        self.fail_with = fail_with

    def write(self, data: bytes) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.data.extend(data)

    async def drain(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


def sign_response(
    status: bool = True,
    data: str = '{"affected_items": []}',
    session_id: str = "sess-1",
    timestamp: int = 1000,
    key: str = SERVER_KEY,
) -> SignedResponse:
    unsigned = SignedResponse(status=status, data=data, session_id=session_id, timestamp=timestamp, signature="")
    sig = digest_b64(response_signing_bytes(unsigned), key.encode())
    return unsigned.model_copy(update={"signature": sig})


def response_bytes(response: SignedResponse) -> bytes:
    return canonical_json(response.model_dump())


@pytest.fixture
def make_transport() -> Callable[..., Transport]:
    def _make(script, fail_write: BaseException | None = None, peer: str = "test:1") -> Transport:
        return Transport(ScriptedReader(script), FakeWriter(fail_write), peer=peer)
    return _make


@pytest.fixture
def no_sleep():
    """Replacement for asyncio.sleep that records requested delays."""
    calls: List[float] = []

    async def _sleep(delay: float) -> None:
        calls.append(delay)
        await asyncio.sleep(0)

    _sleep.calls = calls
    return _sleep


@pytest.fixture
def signed_response() -> Callable[..., SignedResponse]:
    return sign_response


@pytest.fixture
def encode_response() -> Callable[[SignedResponse], bytes]:
    return response_bytes
