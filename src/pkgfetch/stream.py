"""Tarball byte stream handed to callers before production finishes."""
import logging
import queue
import threading
from typing import BinaryIO, Callable, Iterator, List, Optional, Union

from pkgfetch.core.errors import IntegrityError, StreamCancelledError
from pkgfetch.integrity import Integrity, IntegrityHasher

logger = logging.getLogger(__name__)

_END = object()

# How often a producer blocked on a full queue checks for cancellation
_POLL_SECONDS = 0.1


class TarballStream:
    """Producer/consumer pair for tarball bytes.

    A producer callable runs on a background thread and calls ``write``;
    consumers iterate, ``read`` or ``pipe``. A producer failure is raised
    from the consumer side once the bytes written before it are drained.

    Consumers that stop early call ``close()`` (or use the stream as a
    context manager, or break out of iteration). The producer's next
    ``write`` then raises StreamCancelledError so that its scoped temp
    directories unwind.

    Side-channel metadata:
        resolved: set once the source is resolved
        integrity: expected digest until the end of stream, then the
            digest of the bytes actually produced
    """

    def __init__(
        self,
        resolved: Optional[str] = None,
        integrity: Union[str, Integrity, None] = None,
        max_buffered: int = 64,
    ):
        self.resolved = resolved
        self.expected = Integrity.parse(integrity)
        self.integrity: Optional[Integrity] = self.expected
        self._queue: "queue.Queue" = queue.Queue(maxsize=max_buffered)
        self._hasher = IntegrityHasher(self.expected.algorithm if self.expected else "sha512")
        self._tees: List = []
        self._integrity_callbacks: List[Callable[[Integrity], None]] = []
        self._thread: Optional[threading.Thread] = None
        self._cancelled = threading.Event()
        self._finished = False

    def __enter__(self) -> "TarballStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._cancelled.is_set()

    def start(self, producer: Callable[["TarballStream"], None]) -> "TarballStream":
        self._thread = threading.Thread(target=self._run, args=(producer,), daemon=True)
        self._thread.start()
        return self

    def _run(self, producer: Callable[["TarballStream"], None]) -> None:
        try:
            producer(self)
            self._finish()
        except StreamCancelledError:
            logger.debug(f"Tarball producer for {self.resolved} stopped: stream closed")
            return
        except Exception as exc:
            logger.debug(f"Tarball producer failed: {exc}")
            self._put(exc)
            return
        self._put(_END)

    def _put(self, item) -> bool:
        """Enqueue ``item``; False if the consumer closed the stream first."""
        while not self._cancelled.is_set():
            try:
                self._queue.put(item, timeout=_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def tee(self, sink) -> None:
        """Copy every chunk written from now on into ``sink.write``."""
        self._tees.append(sink)

    def expect(self, integrity: Union[str, Integrity]) -> None:
        """Set the expected digest; only valid before any bytes are written."""
        if self._hasher.size:
            raise RuntimeError("expect() called after data was written")
        self.expected = Integrity.parse(integrity)
        self.integrity = self.expected
        self._hasher = IntegrityHasher(self.expected.algorithm)

    def on_integrity(self, callback: Callable[[Integrity], None]) -> None:
        self._integrity_callbacks.append(callback)

    def write(self, chunk: bytes) -> None:
        if self._cancelled.is_set():
            raise StreamCancelledError(f"Tarball stream for {self.resolved} was closed")
        if not chunk:
            return
        chunk = bytes(chunk)
        self._hasher.update(chunk)
        for sink in self._tees:
            sink.write(chunk)
        if not self._put(chunk):
            raise StreamCancelledError(f"Tarball stream for {self.resolved} was closed")

    def _finish(self) -> None:
        actual = self._hasher.result()
        if self.expected is not None and not self.expected.matches(actual):
            raise IntegrityError(
                f"Integrity check failed for {self.resolved}: wanted {self.expected} but got {actual}",
                expected=str(self.expected),
                actual=str(actual),
            )
        self.integrity = actual
        for callback in self._integrity_callbacks:
            callback(actual)

    def close(self) -> None:
        """Stop consuming. Unread bytes are dropped and the producer unwinds."""
        if self._finished:
            return
        self._finished = True
        self._cancelled.set()

    def __iter__(self) -> Iterator[bytes]:
        if self._finished:
            return
        try:
            while True:
                item = self._queue.get()
                if item is _END:
                    self._finished = True
                    return
                if isinstance(item, BaseException):
                    self._finished = True
                    raise item
                yield item
        finally:
            # Abandoned mid-stream (break, or the iterator was dropped)
            if not self._finished:
                self.close()

    def read(self) -> bytes:
        return b"".join(self)

    def pipe(self, dest: BinaryIO) -> int:
        """Write the whole stream into ``dest``; returns bytes written."""
        total = 0
        for chunk in self:
            dest.write(chunk)
            total += len(chunk)
        return total

    def wait(self, timeout: Optional[float] = None) -> None:
        """Join the producer thread (after draining or closing)."""
        if self._thread is not None:
            self._thread.join(timeout)
