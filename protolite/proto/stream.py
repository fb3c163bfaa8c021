"""Length-delimited message streams over sync or async byte streams."""

import logging
from asyncio import StreamReader, StreamWriter
from collections.abc import AsyncIterator, Coroutine, Iterator
from io import BufferedIOBase
from typing import Any, Generic, Literal, TypeVar, overload

from .errors import MalformedVarintError, ProtoliteError
from .message import Message
from .varint import MAX_VARINT_LEN, decode_varint

logger = logging.getLogger(__name__)

TMessage = TypeVar("TMessage", bound=Message)


class StreamError(ProtoliteError):
    """Raised when stream operations fail."""


class DelimitedStream(Generic[TMessage]):
    """Sends and receives varint length-prefixed messages of one type.

    Supports both synchronous and asynchronous I/O. For sync operations,
    pass a BufferedIOBase stream. For async operations, pass a tuple of
    (StreamReader, StreamWriter).

    Example (sync):
        stream = DelimitedStream(stream=sock_file, message_type=Request)
        stream.send(Request(user_string="hello"))
        for msg in stream.messages():
            handle(msg)

    Example (async):
        reader, writer = await asyncio.open_connection(host, port)
        stream = DelimitedStream(stream=(reader, writer), message_type=Request)
        await stream.send(Request(user_string="hello"), async_=True)
        async for msg in stream.messages(async_=True):
            await handle(msg)
    """

    _stream: BufferedIOBase | None
    _async_reader: StreamReader | None
    _async_writer: StreamWriter | None

    def __init__(
        self,
        *,
        stream: BufferedIOBase | tuple[StreamReader, StreamWriter],
        message_type: type[TMessage],
        max_length: int = 64 * 1024 * 1024,
    ) -> None:
        if isinstance(stream, tuple):
            self._stream = None
            self._async_reader, self._async_writer = stream
        else:
            self._stream = stream
            self._async_reader = None
            self._async_writer = None

        self._message_type = message_type
        self._max_length = max_length
        self._buffer = bytearray()

    def append_buffer(self, data: bytes) -> None:
        """Append received data to the receive buffer."""
        self._buffer.extend(data)

    def clear_buffer(self) -> None:
        self._buffer.clear()

    def _encode_message(self, message: TMessage) -> bytes:
        if not isinstance(message, self._message_type):
            raise StreamError(
                f"{type(message).__name__} sent on a stream of {self._message_type.__name__}"
            )
        return message.encode_delimited().finish()

    def decode_buffered(self) -> TMessage | None:
        """Decode one message from the receive buffer if a whole frame is there."""
        if not self._buffer:
            return None
        try:
            length, start = decode_varint(self._buffer)
        except MalformedVarintError:
            if len(self._buffer) < MAX_VARINT_LEN and all(b & 0x80 for b in self._buffer):
                return None  # length prefix not complete yet
            raise

        if length > self._max_length:
            raise StreamError(f"frame of {length} bytes exceeds limit of {self._max_length}")
        if start + length > len(self._buffer):
            return None

        frame = bytes(self._buffer[start : start + length])
        del self._buffer[: start + length]
        logger.debug("decoded %d byte %s frame", length, self._message_type.__name__)
        return self._message_type.decode(frame)

    @overload
    def send(self, message: TMessage, *, async_: Literal[False] = False) -> None: ...

    @overload
    def send(self, message: TMessage, *, async_: Literal[True]) -> Coroutine[Any, Any, None]: ...

    def send(self, message: TMessage, *, async_: bool = False) -> None | Coroutine[Any, Any, None]:
        """Send a message over the stream.

        Args:
            message: The message to send.
            async_: If True, returns a coroutine for async sending.
        """
        if async_:
            return self._send_async(message)

        if self._stream is None:
            raise StreamError("Sync send requires a BufferedIOBase stream")
        self._stream.write(self._encode_message(message))
        return None

    async def _send_async(self, message: TMessage) -> None:
        if self._async_writer is None:
            raise StreamError("Async send requires a StreamWriter")
        self._async_writer.write(self._encode_message(message))
        await self._async_writer.drain()

    @overload
    def poll(self, *, async_: Literal[False] = False) -> TMessage | None: ...

    @overload
    def poll(self, *, async_: Literal[True]) -> Coroutine[Any, Any, TMessage | None]: ...

    def poll(self, *, async_: bool = False) -> TMessage | None | Coroutine[Any, Any, TMessage | None]:
        """Read available data and return a message if one is complete.

        Returns:
            A message if one is available, None otherwise.
            For async, returns a coroutine.
        """
        if async_:
            return self._poll_async()

        if self._stream is None:
            raise StreamError("Sync poll requires a BufferedIOBase stream")
        data = self._stream.read()
        if data:
            self.append_buffer(data)
        return self.decode_buffered()

    async def _poll_async(self) -> TMessage | None:
        if self._async_reader is None:
            raise StreamError("Async poll requires a StreamReader")

        message = self.decode_buffered()
        if message is not None:
            return message

        data = await self._async_reader.read(4096)
        if not data:
            return None
        self.append_buffer(data)
        return self.decode_buffered()

    @overload
    def messages(self, *, async_: Literal[False] = False) -> Iterator[TMessage]: ...

    @overload
    def messages(self, *, async_: Literal[True]) -> AsyncIterator[TMessage]: ...

    def messages(self, *, async_: bool = False) -> Iterator[TMessage] | AsyncIterator[TMessage]:
        """Iterate over incoming messages until the stream is exhausted.

        Example (sync):
            for msg in stream.messages():
                handle(msg)

        Example (async):
            async for msg in stream.messages(async_=True):
                await handle(msg)
        """
        if async_:
            return self._messages_async()
        return self._messages_sync()

    def _messages_sync(self) -> Iterator[TMessage]:
        if self._stream is None:
            raise StreamError("Sync iteration requires a BufferedIOBase stream")
        while True:
            message = self.decode_buffered()
            if message is not None:
                yield message
                continue
            data = self._stream.read(4096)
            if not data:
                if self._buffer:
                    raise StreamError(f"stream ended inside a frame ({len(self._buffer)} bytes left)")
                return
            self.append_buffer(data)

    async def _messages_async(self) -> AsyncIterator[TMessage]:
        if self._async_reader is None:
            raise StreamError("Async iteration requires a StreamReader")
        while True:
            message = self.decode_buffered()
            if message is not None:
                yield message
                continue
            data = await self._async_reader.read(4096)
            if not data:
                if self._buffer:
                    raise StreamError(f"stream ended inside a frame ({len(self._buffer)} bytes left)")
                return
            self.append_buffer(data)
