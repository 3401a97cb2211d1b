# src/llmchat/core/stream.py
"""
Plumbing shared by every streaming provider.

A streaming call hands its caller a ChunkChannel and produces into it from one
background thread. The caller owns a CancelContext; cancelling it makes every
blocking step of the producer give up (channel sends poll the flag, and
providers register a callback that closes their live transport).
"""
from __future__ import annotations
import logging
import queue
import threading
from typing import Callable, Iterator, List

from .errors import TransportError
from .models import StreamChunk

logger = logging.getLogger(__name__)

STREAM_BUFFER_SIZE = 10
_POLL_INTERVAL = 0.05
_CLOSED = object()


class CancelContext:
    """Cancellation signal shared by a stream's consumer and its producer."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            try:
                cb()
            except Exception:
                logger.debug("cancel callback failed", exc_info=True)

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Run callback when cancelled (immediately if already cancelled)."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


class ChunkChannel:
    """
    Bounded, ordered, single-producer channel of StreamChunk.

    Iterating yields chunks in send order and stops after the terminal chunk
    (done=True) or once the producer closed the channel.
    """

    def __init__(self, ctx: CancelContext, capacity: int = STREAM_BUFFER_SIZE):
        self._ctx = ctx
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=capacity)
        self._closed = threading.Event()
        self._terminated = False

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, chunk: StreamChunk) -> bool:
        """
        Block until the chunk is queued. Returns False without queuing when the
        context is cancelled first.
        """
        if self._terminated or self._closed.is_set():
            raise RuntimeError("send on a finished stream")
        while True:
            if self._ctx.cancelled:
                return False
            try:
                self._queue.put(chunk, timeout=_POLL_INTERVAL)
                break
            except queue.Full:
                continue
        if chunk.done:
            self._terminated = True
        return True

    def close(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        try:
            self._queue.put_nowait(_CLOSED)
        except queue.Full:
            # Consumer notices the closed flag once it drains the queue
            pass

    def __iter__(self) -> Iterator[StreamChunk]:
        while True:
            try:
                item = self._queue.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._closed.is_set() and self._queue.empty():
                    return
                continue
            if item is _CLOSED:
                return
            yield item
            if item.done:
                return


def start_stream(
    ctx: CancelContext,
    produce: Callable[[ChunkChannel], None],
    *,
    provider: str,
) -> ChunkChannel:
    """
    Run produce(channel) on its own thread and return the channel immediately.

    produce owns the transport for its lifetime and is expected to send the
    terminal chunk itself. If it returns or raises without doing so, a terminal
    error chunk is sent here (unless the context was cancelled), and the
    channel is always closed.
    """
    channel = ChunkChannel(ctx)

    def _run() -> None:
        try:
            produce(channel)
        except Exception as e:
            logger.debug("%s producer raised", provider, exc_info=True)
            if not channel.terminated and not ctx.cancelled:
                err = e if isinstance(e, TransportError) else TransportError(
                    f"{provider} streaming error: {e}", provider=provider
                )
                channel.send(StreamChunk.failed(err))
        finally:
            if not channel.terminated and not ctx.cancelled:
                channel.send(StreamChunk.failed(
                    TransportError(f"{provider} stream ended before completion", provider=provider)
                ))
            if ctx.cancelled:
                logger.debug("%s stream cancelled", provider)
            channel.close()

    thread = threading.Thread(target=_run, name=f"{provider}-stream", daemon=True)
    thread.start()
    return channel
