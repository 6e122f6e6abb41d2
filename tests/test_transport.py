import asyncio
import ssl

import pytest

from wqlrun.errors import ConfigError, ConnectionClosedEarly, NetworkError, ReadLimitExceeded
from wqlrun.protocol import ReadPolicy, TlsConnector, Transport, insecure_tls_context, parse_address, read_until_close


class TestParseAddress:
    def test_host_port(self):
        assert parse_address("192.168.1.100:8080") == ("192.168.1.100", 8080)
        assert parse_address("query.local:443") == ("query.local", 443)

    def test_ipv6(self):
        assert parse_address("[::1]:9000") == ("::1", 9000)

    @pytest.mark.parametrize(
        "bad",
        ["", "host", "host:", ":80", "host:http", "host:0", "host:70000", "host:¹", "host:８０", "a..b:80", "a" * 64 + ".example:443"],
    )
    def test_rejects_malformed(self, bad):
        with pytest.raises(ConfigError):
            parse_address(bad)


def test_insecure_context_trusts_everyone():
    ctx = insecure_tls_context()
    assert ctx.verify_mode == ssl.CERT_NONE
    assert ctx.check_hostname is False


class TestReadUntilClose:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("k", [1, 2, 7])
    async def test_chunks_reassembled_in_order(self, make_transport, k):
        payload = bytes(range(256)) * 4
        size = -(-len(payload) // k)
        chunks = [payload[i:i + size] for i in range(0, len(payload), size)]
        assert len(chunks) == k
        t = make_transport(chunks)
        assert await read_until_close(t) == payload

    @pytest.mark.asyncio
    async def test_progress_reports_cumulative_bytes(self, make_transport):
        seen = []
        t = make_transport([b"abc", b"de", b"f"])
        await read_until_close(t, on_progress=seen.append)
        assert seen == [3, 5, 6]

    @pytest.mark.asyncio
    async def test_reads_in_policy_chunk_size(self, make_transport):
        t = make_transport([b"x" * 16, b"y" * 16])
        # ScriptedReader asserts each returned chunk fits the requested size
        assert await read_until_close(t, ReadPolicy(chunk_size=16)) == b"x" * 16 + b"y" * 16

    @pytest.mark.asyncio
    async def test_immediate_close_is_distinct_error(self, make_transport):
        with pytest.raises(ConnectionClosedEarly):
            await read_until_close(make_transport([]))

    @pytest.mark.asyncio
    async def test_open_but_silent_peer_blocks_until_data(self):
        reader = asyncio.StreamReader()

        class _Writer:
            def close(self):
                pass

            async def wait_closed(self):
                pass

        t = Transport(reader, _Writer())
        task = asyncio.ensure_future(read_until_close(t))
        await asyncio.sleep(0.05)
        assert not task.done()
        reader.feed_data(b'{"late":true}')
        reader.feed_eof()
        assert await asyncio.wait_for(task, 1) == b'{"late":true}'

    @pytest.mark.asyncio
    async def test_read_error_is_network_error(self, make_transport):
        cause = ConnectionResetError("reset by peer")
        with pytest.raises(NetworkError) as exc_info:
            await read_until_close(make_transport([b"partial", cause]))
        assert exc_info.value.last_error is cause

    @pytest.mark.asyncio
    async def test_max_bytes_bound(self, make_transport):
        t = make_transport([b"a" * 10, b"b" * 10])
        with pytest.raises(ReadLimitExceeded) as exc_info:
            await read_until_close(t, ReadPolicy(max_bytes=15))
        assert exc_info.value.received == 20

    @pytest.mark.asyncio
    async def test_max_duration_bound(self):
        reader = asyncio.StreamReader()
        reader.feed_data(b"some")

        class _Writer:
            def close(self):
                pass

            async def wait_closed(self):
                pass

        with pytest.raises(ReadLimitExceeded) as exc_info:
            await read_until_close(Transport(reader, _Writer()), ReadPolicy(max_duration=0.05))
        assert exc_info.value.received == 4


class _Recorder:
    def __init__(self, failures, result=None):
        self.failures = list(failures)
        self.calls = []
        self.result = result

    async def __call__(self, host, port, **kwargs):
        self.calls.append((host, port, kwargs))
        if self.failures:
            raise self.failures.pop(0)
        return self.result


class TestTlsConnector:
    @pytest.mark.asyncio
    async def test_exhaustion_after_exact_attempts(self, no_sleep):
        errors = [ConnectionRefusedError(111, "refused") for _ in range(3)]
        opener = _Recorder(errors)
        outcomes = []
        connector = TlsConnector(
            max_attempts=3,
            delay=1.5,
            open_connection=opener,
            sleep=no_sleep,
            on_attempt=lambda n, err: outcomes.append((n, err)),
        )
        with pytest.raises(NetworkError) as exc_info:
            await connector.connect_with_retry("10.0.0.1:8080")
        assert len(opener.calls) == 3
        assert no_sleep.calls == [1.5, 1.5]  # between attempts only
        assert [n for n, _ in outcomes] == [1, 2, 3]
        assert exc_info.value.last_error is errors[2]
        assert exc_info.value.__cause__ is errors[2]

    @pytest.mark.asyncio
    async def test_handshake_failure_is_retried(self, no_sleep, make_transport):
        stub = make_transport([])
        opener = _Recorder([ssl.SSLError("handshake failure")], result=(stub.reader, stub.writer))
        connector = TlsConnector(max_attempts=3, delay=1.0, open_connection=opener, sleep=no_sleep)
        transport = await connector.connect_with_retry("query.local:8443")
        assert isinstance(transport, Transport)
        assert transport.peer == "query.local:8443"
        assert len(opener.calls) == 2
        assert no_sleep.calls == [1.0]

    @pytest.mark.asyncio
    async def test_passes_tls_parameters(self, no_sleep, make_transport):
        stub = make_transport([])
        ctx = insecure_tls_context()
        opener = _Recorder([], result=(stub.reader, stub.writer))
        connector = TlsConnector(ssl_context=ctx, server_hostname="localhost", open_connection=opener, sleep=no_sleep)
        await connector.connect_with_retry("127.0.0.1:9443")
        host, port, kwargs = opener.calls[0]
        assert (host, port) == ("127.0.0.1", 9443)
        assert kwargs["ssl"] is ctx
        assert kwargs["server_hostname"] == "localhost"
        assert no_sleep.calls == []

    @pytest.mark.asyncio
    async def test_unencodable_host_fails_before_connecting(self, no_sleep):
        opener = _Recorder([])
        connector = TlsConnector(max_attempts=2, delay=0, open_connection=opener, sleep=no_sleep)
        with pytest.raises(ConfigError):
            await connector.connect_with_retry("a" * 64 + ".example:443")
        assert opener.calls == []

    @pytest.mark.asyncio
    async def test_resolver_value_error_wrapped_without_retry(self, no_sleep):
        cause = UnicodeError("encoding with 'idna' codec failed")
        opener = _Recorder([cause])
        connector = TlsConnector(max_attempts=3, delay=1.0, open_connection=opener, sleep=no_sleep)
        with pytest.raises(NetworkError) as exc_info:
            await connector.connect_with_retry("query.local:443")
        assert len(opener.calls) == 1
        assert no_sleep.calls == []
        assert exc_info.value.__cause__ is cause

    def test_rejects_zero_attempts(self):
        with pytest.raises(ConfigError):
            TlsConnector(max_attempts=0)
