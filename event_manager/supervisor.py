"""Process supervisor: run the API server and restart it after a crash.

A request that fails is answered with a 500 by the per-request error
boundary in ``event_manager.main``; this loop only deals with the server
process itself going down.
"""
import logging
import time
from typing import Callable, Optional

import uvicorn

from event_manager.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _run_server(settings: Settings) -> None:
    uvicorn.run(
        "event_manager.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


def serve(
    settings: Optional[Settings] = None,
    run: Callable[[Settings], None] = _run_server,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Run the server until it exits cleanly; returns the number of restarts."""
    settings = settings or default_settings
    restarts = 0
    while True:
        try:
            run(settings)
            logger.info("Server stopped")
            return restarts
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down")
            return restarts
        except Exception:
            if restarts >= settings.SUPERVISOR_MAX_RESTARTS:
                logger.critical("Server crashed %d times, giving up", restarts + 1)
                raise
            restarts += 1
            logger.exception(
                "Server crashed, restarting in %.1fs (%d/%d)",
                settings.SUPERVISOR_RESTART_DELAY_SECONDS, restarts, settings.SUPERVISOR_MAX_RESTARTS,
            )
            sleep(settings.SUPERVISOR_RESTART_DELAY_SECONDS)


def main() -> None:
    logging.basicConfig(
        level=default_settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    serve()
