"""Run the harvester until SIGINT/SIGTERM: ``python -m leaderboard_harvester``."""
import asyncio
import logging
import signal

from .app import build_service
from .config import get_settings

log = logging.getLogger("leaderboard_harvester")


async def run() -> None:
    settings = get_settings()
    service = build_service(settings)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))

    await service.startup()
    log.info("Harvesting %s every %d minutes", settings.target_url, settings.scrape_interval_minutes)
    try:
        await stop.wait()
    finally:
        log.info("Shutting down")
        await service.shutdown()


def main() -> None:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(run())


if __name__ == "__main__":
    main()
