"""Request body fan-out.

A Starlette request body can only be streamed once, but verification needs
it twice: once for the HMAC and once as decoded text.  ``BodyTee`` reads the
stream a single time and hands every chunk to each branch, so both consumers
run side by side over identical bytes.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator

from starlette.requests import ClientDisconnect

from buzzguard.core.exceptions import TransportError

logger = logging.getLogger(__name__)

_END = object()


class BodyTee:
    """Duplicate one async byte stream into ``branches`` independent iterators.

    Queues are unbounded: a consumer that stops early must never stall the
    pump, and the ``limit`` already caps how much can be buffered.  Any error
    hit while pumping is delivered to every branch.
    """

    def __init__(
        self,
        source: AsyncIterable[bytes],
        *,
        branches: int = 2,
        limit: int | None = None,
        declared_length: int | None = None,
    ) -> None:
        self._source = source
        self._limit = limit
        self._declared_length = declared_length
        self._queues: list[asyncio.Queue[object]] = [asyncio.Queue() for _ in range(branches)]
        self._branches: list[AsyncIterator[bytes]] = [self._drain(queue) for queue in self._queues]
        self.received = 0

    @property
    def branches(self) -> list[AsyncIterator[bytes]]:
        """One iterator per queue, created once; repeated reads return the same ones."""
        return list(self._branches)

    def _broadcast(self, item: object) -> None:
        for queue in self._queues:
            queue.put_nowait(item)

    async def pump(self) -> int:
        """Read the source to completion.  Returns the number of bytes seen."""
        try:
            self._check_declared_length()
            async for chunk in self._source:
                if not chunk:
                    continue
                self.received += len(chunk)
                if self._limit is not None and self.received > self._limit:
                    raise TransportError("entity.too.large", status_code=413)
                self._broadcast(chunk)
        except TransportError as exc:
            self._broadcast(exc)
            raise
        except ClientDisconnect as exc:
            error = TransportError("request.aborted", status_code=400)
            self._broadcast(error)
            raise error from exc
        except Exception as exc:
            logger.warning("Request body stream failed: %s", type(exc).__name__)
            error = TransportError()
            self._broadcast(error)
            raise error from exc
        self._broadcast(_END)
        return self.received

    def _check_declared_length(self) -> None:
        if (
            self._limit is not None
            and self._declared_length is not None
            and self._declared_length > self._limit
        ):
            raise TransportError("entity.too.large", status_code=413)

    @staticmethod
    async def _drain(queue: asyncio.Queue[object]) -> AsyncIterator[bytes]:
        while True:
            item = await queue.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item  # type: ignore[misc]


async def collect_body(chunks: AsyncIterable[bytes]) -> str:
    """Buffer ``chunks`` into one UTF-8 decoded string.

    Decoding happens chunk by chunk; a multi-byte sequence split across two
    chunks is handled by the incremental decoder.

    Raises:
        TransportError(400): If the bytes are not valid UTF-8.
    """
    decoder = codecs.getincrementaldecoder("utf-8")()
    parts: list[str] = []
    try:
        async for chunk in chunks:
            parts.append(decoder.decode(chunk))
        parts.append(decoder.decode(b"", final=True))
    except UnicodeDecodeError as exc:
        raise TransportError("encoding.invalid", status_code=400) from exc
    return "".join(parts)
