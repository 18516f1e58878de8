"""Entry point for the World Bank Data Explorer desktop application.

This module wires the static-host fetch layer to the Tkinter dashboard. Keeping
the top-level script tiny makes it easy to debug start-up issues (missing
dependencies, an unreachable data host) without reading the UI code itself.
The split files themselves are produced by ``wbexplorer run``.
"""

import logging
import os

from wbexplorer.cache import QueryCache
from wbexplorer.config import config
from wbexplorer.sources.static_host import StaticHostSource
from wbexplorer.ui.dashboard import Dashboard


def main() -> None:
    """Bootstrap the fetch layer and launch the Tkinter dashboard.

    Logging defaults to ``INFO``. Set the ``LOG_LEVEL`` environment variable to
    ``DEBUG`` to see per-request and cache diagnostics, and
    ``WB_DATA_BASE_URL`` to point the explorer at another host.
    """

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )

    source = StaticHostSource(config.DATA_BASE_URL, QueryCache())
    root = Dashboard(source)
    root.mainloop()


if __name__ == "__main__":
    main()
