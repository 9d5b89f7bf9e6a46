"""Tests for the request body fan-out and UTF-8 collection."""

from __future__ import annotations

import asyncio
import hashlib
import hmac

import pytest
from starlette.requests import ClientDisconnect

from buzzguard.core.body import BodyTee, collect_body
from buzzguard.core.exceptions import TransportError
from buzzguard.core.security import compute_signature

KEY = b"secret"


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


async def _drain(chunks) -> bytes:
    return b"".join([chunk async for chunk in chunks])


class TestBodyTee:
    """Both branches see exactly the bytes the source produced."""

    @pytest.mark.asyncio
    async def test_branches_receive_identical_bytes(self) -> None:
        tee = BodyTee(_chunks(b"ab", b"", b"cd", b"ef"))
        first, second = tee.branches
        left, right, size = await asyncio.gather(_drain(first), _drain(second), tee.pump())
        assert left == right == b"abcdef"
        assert size == 6

    @pytest.mark.asyncio
    async def test_repeated_branch_reads_share_iterators(self) -> None:
        tee = BodyTee(_chunks(b"ab", b"cd"))
        first, second = tee.branches
        again_first, again_second = tee.branches
        assert again_first is first
        assert again_second is second
        left, right, _ = await asyncio.gather(_drain(first), _drain(second), tee.pump())
        assert left == right == b"abcd"

    @pytest.mark.asyncio
    async def test_signature_and_text_run_together(self) -> None:
        body = '{"title": "naïve café"}'.encode("utf-8")
        tee = BodyTee(_chunks(body[:13], body[13:]))
        signer_chunks, text_chunks = tee.branches
        digest, text, _ = await asyncio.gather(
            compute_signature(signer_chunks, KEY),
            collect_body(text_chunks),
            tee.pump(),
        )
        assert digest == hmac.new(KEY, body, hashlib.sha1).hexdigest()
        assert text == '{"title": "naïve café"}'

    @pytest.mark.asyncio
    async def test_limit_exceeded_fails_every_branch(self) -> None:
        tee = BodyTee(_chunks(b"12345", b"67890"), limit=8)
        first, second = tee.branches
        results = await asyncio.gather(_drain(first), _drain(second), tee.pump(), return_exceptions=True)
        assert all(isinstance(result, TransportError) for result in results)
        assert results[2].status_code == 413
        assert results[2].message == "entity.too.large"

    @pytest.mark.asyncio
    async def test_declared_length_over_limit_fails_before_reading(self) -> None:
        read = []

        async def source():
            read.append(True)
            yield b"x"

        tee = BodyTee(source(), limit=10, declared_length=11)
        with pytest.raises(TransportError) as excinfo:
            await tee.pump()
        assert excinfo.value.status_code == 413
        assert read == []

    @pytest.mark.asyncio
    async def test_body_at_limit_is_accepted(self) -> None:
        tee = BodyTee(_chunks(b"1234", b"5678"), branches=1, limit=8, declared_length=8)
        (branch,) = tee.branches
        data, size = await asyncio.gather(_drain(branch), tee.pump())
        assert data == b"12345678"
        assert size == 8

    @pytest.mark.asyncio
    async def test_client_disconnect_becomes_400(self) -> None:
        async def source():
            yield b"partial"
            raise ClientDisconnect()

        tee = BodyTee(source())
        first, second = tee.branches
        results = await asyncio.gather(_drain(first), _drain(second), tee.pump(), return_exceptions=True)
        assert all(isinstance(result, TransportError) for result in results)
        assert results[2].status_code == 400
        assert results[2].message == "request.aborted"

    @pytest.mark.asyncio
    async def test_other_stream_error_becomes_500(self) -> None:
        async def source():
            yield b"partial"
            raise RuntimeError("Stream consumed")

        tee = BodyTee(source())
        first, second = tee.branches
        results = await asyncio.gather(_drain(first), _drain(second), tee.pump(), return_exceptions=True)
        assert all(isinstance(result, TransportError) for result in results)
        assert results[2].status_code == 500


class TestCollectBody:
    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_chunks(self) -> None:
        encoded = "€".encode("utf-8")
        text = await collect_body(_chunks(b"price: ", encoded[:1], encoded[1:]))
        assert text == "price: €"

    @pytest.mark.asyncio
    async def test_invalid_utf8_raises_transport_error(self) -> None:
        with pytest.raises(TransportError) as excinfo:
            await collect_body(_chunks(b"\xff\xfe"))
        assert excinfo.value.status_code == 400

    @pytest.mark.asyncio
    async def test_truncated_sequence_at_end_raises(self) -> None:
        with pytest.raises(TransportError):
            await collect_body(_chunks("€".encode("utf-8")[:2]))

    @pytest.mark.asyncio
    async def test_empty_body(self) -> None:
        assert await collect_body(_chunks()) == ""
