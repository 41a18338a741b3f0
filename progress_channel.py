"""
Per-session progress streaming.

A browser opens `/events/{session_id}` and the server registers a
ProgressChannel for that id. While the session runs, its ProgressReporter
prints every line locally and pushes it to the channel if (and only if) a
consumer is connected. Nothing is buffered for late consumers.
"""

import asyncio
from datetime import datetime
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from models import ProgressEvent


class ProgressChannel:
    """One-way event stream to a single connected consumer."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue()

    def send(self, event: ProgressEvent) -> bool:
        """Push an event. Returns False, without raising, once closed."""
        if self.closed:
            return False
        self._queue.put_nowait(event)
        return True

    async def next_event(self) -> Optional[ProgressEvent]:
        """Next event for the consumer; None means the stream has ended."""
        if self.closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(None)


class ChannelRegistry:
    """Process-wide mapping of session id to its open channel."""

    def __init__(self):
        self._channels: dict[str, ProgressChannel] = {}

    def open(self, session_id: str) -> ProgressChannel:
        """Register a fresh channel, closing any previous one for this id."""
        previous = self._channels.get(session_id)
        if previous is not None:
            previous.close()
        channel = ProgressChannel(session_id)
        self._channels[session_id] = channel
        return channel

    def get(self, session_id: str) -> Optional[ProgressChannel]:
        return self._channels.get(session_id)

    def remove(self, session_id: str, channel: Optional[ProgressChannel] = None):
        """
        Close and unregister the channel for `session_id`.

        When `channel` is given, only that exact channel is removed; a newer
        channel registered under the same id is left alone.
        """
        current = self._channels.get(session_id)
        if current is None:
            if channel is not None:
                channel.close()
            return
        if channel is not None and channel is not current:
            channel.close()
            return
        current.close()
        del self._channels[session_id]

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._channels

    def __len__(self) -> int:
        return len(self._channels)


class ProgressReporter:
    """Writes one session's progress to the console and its channel."""

    def __init__(self, registry: ChannelRegistry, session_id: str, debug: bool = False):
        self.registry = registry
        self.session_id = session_id
        self.debug = debug

    def log(self, message: str) -> bool:
        """Print locally and push to the session's channel. Returns True if delivered."""
        ts = datetime.now().strftime("%H:%M:%S")
        print(f"[{ts}] [{self.session_id}] {message}")
        channel = self.registry.get(self.session_id)
        if channel is None:
            return False
        return channel.send(ProgressEvent(log=message))

    async def snapshot(self, page, message: str) -> Optional[bytes]:
        """
        Capture a full-page screenshot in debug mode and stream it.

        Outside debug mode nothing is rendered. A failed capture is logged
        and reported as None.
        """
        if not self.debug or page is None:
            return None
        try:
            image = await page.screenshot(full_page=True)
        except PlaywrightError as e:
            self.log(f"⚠ Snapshot failed: {e}")
            return None
        channel = self.registry.get(self.session_id)
        if channel is not None:
            channel.send(ProgressEvent(log=message, image_snapshot=image))
        return image

    def close(self):
        channel = self.registry.get(self.session_id)
        if channel is not None:
            self.registry.remove(self.session_id, channel)
