"""WebSocket client for the receiver's weather message feed."""
import asyncio
import logging
from typing import AsyncIterator, Optional, Union

import websockets

logger = logging.getLogger(__name__)


class WeatherFeed:
    """Async iterator over raw feed frames, reconnecting with exponential backoff.

    ``max_retries`` of ``None`` keeps reconnecting until ``aclose()``.
    """

    def __init__(self, url: str, max_retries: Optional[int] = None, max_backoff: float = 60.0):
        self.url = url
        self.max_retries = max_retries
        self.max_backoff = max_backoff
        self.running = False
        self.connection = None

    def __aiter__(self) -> AsyncIterator[Union[str, bytes]]:
        return self._frames()

    async def _frames(self):
        self.running = True
        retry_count = 0
        while self.running:
            try:
                logger.info(f"🔗 Connecting to {self.url} (attempt {retry_count + 1})")
                async with websockets.connect(self.url) as websocket:
                    self.connection = websocket
                    logger.info("✅ Connected!")
                    retry_count = 0
                    async for message in websocket:
                        if not self.running:
                            return
                        yield message
            except websockets.exceptions.ConnectionClosed as e:
                logger.warning(f"🔌 Feed connection closed: {e}")
            except websockets.exceptions.WebSocketException as e:
                logger.warning(f"❌ Feed handshake failed: {e}")
            except OSError as e:
                logger.warning(f"❌ Feed connection error: {e}")
            finally:
                self.connection = None

            retry_count += 1
            if self.max_retries is not None and retry_count > self.max_retries:
                logger.error(f"❌ Feed unavailable after {self.max_retries} retries")
                raise ConnectionError(f"could not reach {self.url}")
            if self.running:
                wait_time = min(2 ** retry_count, self.max_backoff)
                logger.info(f"🔄 Reconnecting in {wait_time} seconds")
                await asyncio.sleep(wait_time)

    async def aclose(self):
        self.running = False
        if self.connection is not None:
            await self.connection.close()
