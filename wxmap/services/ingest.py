"""Applies streamed weather messages to a StationStore and checkpoints it.

Two tasks share the store while running: one consumes messages as they
arrive, the other writes the snapshot on a fixed interval. Stopping (an event,
SIGINT/SIGTERM, or the source running dry) cancels both without an extra
write; call ``flush()`` for a guaranteed final save.
"""
import asyncio
import json
import logging
import signal
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Union

from pydantic import ValidationError

from wxmap.config import Settings, configure_logging
from wxmap.models.airport import Airport
from wxmap.models.weather import UpdateMessage
from wxmap.services import bulletin
from wxmap.services.airports import load_airports
from wxmap.services.feed import WeatherFeed
from wxmap.services.snapshot import SnapshotError, load_store, save_store
from wxmap.services.store import StationStore, normalize_station_id

logger = logging.getLogger(__name__)

METAR_KINDS = ("METAR", "SPECI")
TAF_KINDS = ("TAF", "TAF.AMD")
PIREP_KIND = "PIREP"
WINDS_KIND = "WINDS"
# Feed locations for these kinds never include the country prefix
ALWAYS_PREFIXED = (PIREP_KIND, WINDS_KIND)
# Feed payloads for these kinds leave out the station itself
LABELED_KINDS = METAR_KINDS + TAF_KINDS + (WINDS_KIND,)

LINE_BREAK = "<br>"


def decode_message(raw: Union[str, bytes, Dict[str, Any], UpdateMessage]) -> Optional[UpdateMessage]:
    """Decode one feed frame. Returns ``None`` (and logs) when it is not a message."""
    if isinstance(raw, UpdateMessage):
        return raw
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw) if isinstance(raw, str) else raw
        return UpdateMessage.model_validate(data)
    except (UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Error decoding feed message: {e}")
        return None


def format_payload(data: str) -> str:
    return data.replace("\r\n", "\n").replace("\n", LINE_BREAK)


def label_payload(station_id: str, text: str) -> str:
    """Lead ``text`` with ``station_id`` unless it already starts with that station."""
    words = text.split(maxsplit=1)
    if not words or normalize_station_id(words[0]) == station_id:
        return text
    return f"{station_id} {text}"


class StreamIngestor:
    def __init__(
        self,
        store: StationStore,
        snapshot_path: Union[str, Path],
        pireps_path: Union[str, Path],
        interval: float = 10.0,
        airports: Optional[Dict[str, Airport]] = None,
    ):
        self.store = store
        self.snapshot_path = Path(snapshot_path)
        self.pireps_path = Path(pireps_path)
        self.interval = interval
        self.airports = airports or {}
        self.applied = 0
        self.discarded = 0
        self.checkpoints = 0

    def _airport_location(self, station_id: str):
        airport = self.airports.get(station_id)
        if airport is None:
            return None, None
        try:
            return float(airport.lat), float(airport.lng)
        except ValueError:
            return None, None

    def apply(self, message: UpdateMessage) -> bool:
        """Route one message into the store. Returns False when it was discarded."""
        kind = (message.type or "").strip().upper()
        station_id = normalize_station_id(message.location, always_prefix=kind in ALWAYS_PREFIXED)
        if not station_id:
            logger.warning(f"Discarding {kind or 'untyped'} message without a location")
            self.discarded += 1
            return False

        lat = lng = None
        existing = self.store.get(station_id)
        if existing is None or existing.lat is None or existing.lng is None:
            lat, lng = self._airport_location(station_id)

        text = format_payload(message.data)
        if kind in LABELED_KINDS:
            text = label_payload(station_id, text)
        time = message.time or None
        logger.debug(f"Type {kind} Location {station_id} Data {text}")

        if kind in METAR_KINDS:
            self.store.upsert_metar(station_id, text, bulletin.flight_category(message.data),
                                    lat=lat, lng=lng, time=time)
        elif kind in TAF_KINDS:
            self.store.upsert_taf(station_id, text, lat=lat, lng=lng, time=time)
        elif kind == PIREP_KIND:
            self.store.upsert_pirep(station_id, text, lat=lat, lng=lng, time=time)
        elif kind == WINDS_KIND:
            self.store.upsert_winds(station_id, text, lat=lat, lng=lng, time=time)
        else:
            logger.warning(f"Unhandled message type {message.type!r} for {station_id}")
            self.discarded += 1
            return False

        self.applied += 1
        return True

    def flush(self):
        """Write the snapshot now. Raises ``SnapshotError`` when it cannot be saved."""
        save_store(self.store, self.snapshot_path, self.pireps_path)

    def checkpoint(self) -> bool:
        try:
            self.flush()
        except SnapshotError as e:
            logger.error(f"❌ Checkpoint failed, will retry next tick: {e}")
            return False
        self.checkpoints += 1
        return True

    async def _checkpoint_loop(self):
        while True:
            await asyncio.sleep(self.interval)
            logger.info("Save file")
            # The copy is taken under the store lock; only the disk write runs off-loop
            await asyncio.to_thread(self.checkpoint)

    async def _consume(self, source: AsyncIterator[Any]):
        async for raw in source:
            message = decode_message(raw)
            if message is None:
                self.discarded += 1
                continue
            self.apply(message)
        logger.info("Message source closed")

    async def run(self, source: AsyncIterator[Any], stop: Optional[asyncio.Event] = None):
        """Consume ``source`` until it ends or ``stop`` is set.

        Errors raised by the source propagate after both tasks are stopped.
        """
        stop = stop or asyncio.Event()
        consumer = asyncio.create_task(self._consume(source))
        ticker = asyncio.create_task(self._checkpoint_loop())
        stopper = asyncio.create_task(stop.wait())
        try:
            await asyncio.wait({consumer, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if stop.is_set():
                logger.info("Interrupt received, stopping ingest")
            for task in (consumer, ticker, stopper):
                task.cancel()
            await asyncio.gather(consumer, ticker, stopper, return_exceptions=True)
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

        if not consumer.cancelled() and consumer.exception() is not None:
            raise consumer.exception()


async def _run(settings: Settings):
    store, problems = load_store(settings.snapshot_path, settings.pireps_path, max_pireps=settings.max_pireps)
    for problem in problems:
        logger.warning(f"Starting without prior data: {problem}")

    airports, problem = load_airports(settings.airports_path, settings.region)
    if problem:
        logger.warning(f"Airport locations unavailable: {problem}")

    ingestor = StreamIngestor(
        store,
        settings.snapshot_path,
        settings.pireps_path,
        interval=settings.checkpoint_seconds,
        airports={a.icao: a for a in airports},
    )

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    feed = WeatherFeed(settings.feed_url)
    await ingestor.run(feed, stop)
    logger.info(f"Ingest stopped: {ingestor.applied} applied, {ingestor.discarded} discarded")


def main():
    settings = Settings()
    configure_logging(settings.log_level)
    asyncio.run(_run(settings))


if __name__ == "__main__":
    main()
