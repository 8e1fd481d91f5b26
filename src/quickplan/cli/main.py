# src/quickplan/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState (seeding example tasks into an empty
store), then runs the console REPL in the main thread.
"""

from __future__ import annotations

import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)
    logger.info("Starting %s (log file %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    def _handle_sigterm(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        raise KeyboardInterrupt

    try:
        signal.signal(signal.SIGTERM, _handle_sigterm)
    except (ValueError, OSError, AttributeError):
        # Not in the main thread, or the platform lacks SIGTERM.
        pass

    try:
        run_console_loop(state)
    except KeyboardInterrupt:
        pass
    finally:
        # TaskStore uses short-lived sqlite connections per call; nothing to close.
        logger.info("Bye.")


if __name__ == "__main__":
    main()
