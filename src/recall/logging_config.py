"""Console logging for the recall CLI.

Library modules only call ``logging.getLogger(__name__)``; the CLI installs a
single RichHandler on the ``recall`` logger so warnings from the indexer and
search pipeline render on stderr next to the command output.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LOGGER_NAME = "recall"
_HANDLER_NAME = "recall-rich"


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach (or replace) the rich stderr handler. ``verbose`` lowers the level to DEBUG."""
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(_LOGGER_NAME)
    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)

    # LiteLLM logs every retry at INFO; keep it quiet unless debugging.
    logging.getLogger("LiteLLM").setLevel(logging.DEBUG if verbose else logging.ERROR)
    return logger
