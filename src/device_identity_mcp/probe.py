"""Drive loop entry point: tick the identity pipeline until interrupted."""

from __future__ import annotations

import logging
import sys

from . import config
from .session import SessionDriver, TickResult, run
from .transport.port import TransportError
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)


def _report(result: TickResult) -> None:
    if result.changed:
        print(f"state: {result.next_state}", flush=True)


def main() -> int:
    """Open the configured port and drive the pipeline from HaltStream."""
    logging.basicConfig(level=config.LOG_LEVEL)

    conn = SerialConnection(config.PORT, config.BAUDRATE, config.TIMEOUT_MS)
    try:
        conn.open()
    except ConnectionError as e:
        logger.error("%s", e)
        return 1

    driver = SessionDriver(conn, timeout_ms=config.TIMEOUT_MS)
    print(f"state: {driver.state}", flush=True)
    try:
        run(driver, on_tick=_report)
    except KeyboardInterrupt:
        logger.info("Stopped at %s after %d ticks", driver.state, driver.ticks)
    except TransportError as e:
        logger.error("Transport failed at %s: %s", driver.state, e)
        return 1
    finally:
        conn.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
