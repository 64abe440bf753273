"""Bidirectional byte relay between client and destination.

Each direction runs in its own thread and copies until its source reports end
of stream or an error. The first direction to stop closes both streams, which
makes the blocked read in the other direction return so it stops too.

Example:
    result = relay(client, destination)
    logger.info(f"sent {result.upstream} bytes, received {result.downstream}")
"""

import threading
from dataclasses import dataclass

from loguru import logger

from socks5_relay.core.config import RELAY_BUFFER_SIZE

from .stream import Stream


class ClosingPair:
    """Close two streams exactly once, whichever caller gets there first."""

    def __init__(self, first: Stream, second: Stream) -> None:
        self._streams = (first, second)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        for stream in self._streams:
            try:
                stream.close()
            except OSError as e:
                logger.debug(f"Error closing {stream!r}: {e}")


@dataclass(frozen=True)
class RelayResult:
    """Bytes copied in each direction.

    Attributes:
        upstream: Client to destination
        downstream: Destination to client
    """

    upstream: int
    downstream: int


def pump(source: Stream, sink: Stream, closer: ClosingPair, buffer_size: int = RELAY_BUFFER_SIZE) -> int:
    """Copy ``source`` into ``sink`` until either fails or ``source`` ends.

    Returns:
        int: Number of bytes copied
    """
    copied = 0
    try:
        while True:
            data = source.read(buffer_size)
            if not data:
                break
            sink.write(data)
            copied += len(data)
    except OSError as e:
        # Expected when the other direction has already closed both streams
        if not closer.closed:
            logger.debug(f"Relay error: {e}")
    finally:
        closer.close()
    return copied


def relay(client: Stream, destination: Stream, buffer_size: int = RELAY_BUFFER_SIZE) -> RelayResult:
    """Relay bytes both ways until both directions have stopped.

    Both streams are closed when this returns.
    """
    closer = ClosingPair(client, destination)
    counts = {}

    def run(name: str, source: Stream, sink: Stream) -> None:
        counts[name] = pump(source, sink, closer, buffer_size)

    threads = [
        threading.Thread(target=run, args=("upstream", client, destination), daemon=True),
        threading.Thread(target=run, args=("downstream", destination, client), daemon=True),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return RelayResult(counts.get("upstream", 0), counts.get("downstream", 0))
