"""Application entry point — wires gateway, store and reconciler, then the UI."""

import asyncio
import logging
import sys
from typing import Optional

from kitledger.config import Config
from kitledger.database.connection import DatabaseConnection
from kitledger.gateway.base import DataGateway
from kitledger.gateway.local import LocalGateway
from kitledger.gateway.rest import RestGateway
from kitledger.store.entity_store import EntityStore
from kitledger.store.reconciler import ChangeReconciler

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None):
    """Install a basic stderr handler at ``Config.LOG_LEVEL``."""
    level = (level or Config.LOG_LEVEL).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO),
                        format=LOG_FORMAT)


def build_gateway(backend: Optional[str] = None) -> DataGateway:
    """Create the gateway selected by ``Config.GATEWAY_BACKEND``."""
    backend = (backend or Config.GATEWAY_BACKEND).lower()
    if backend == "local":
        return LocalGateway(DatabaseConnection(Config.DATABASE_PATH))
    if backend == "rest":
        return RestGateway()
    raise ValueError(f"Unknown gateway backend: {backend}")


class Session:
    """One dashboard session: gateway -> store -> reconciler.

    ``start`` subscribes before loading so no change between the two is
    missed; changes arriving while the load is in flight are replayed
    over the loaded snapshots. ``close`` tears everything down in
    reverse order.
    """

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway
        self.store = EntityStore(gateway)
        self.reconciler = ChangeReconciler(self.store)

    async def start(self):
        self.reconciler.start()
        try:
            await self.store.load_all()
        except Exception:
            self.reconciler.stop()
            raise

    async def settle(self):
        """Wait for background cost refreshes triggered by recent events."""
        await self.reconciler.drain()

    async def close(self):
        self.reconciler.stop()
        self.store.close()
        await self.gateway.aclose()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


def main():
    """Launch the KitLedger dashboard."""
    from PySide6.QtWidgets import QApplication, QMessageBox

    from kitledger.ui.main_window import MainWindow

    configure_logging()
    app = QApplication(sys.argv)
    app.setApplicationName("KitLedger")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    session = Session(build_gateway())
    try:
        loop.run_until_complete(session.start())
    except Exception as e:
        logger.error("Startup failed: %s", e)
        QMessageBox.critical(None, "KitLedger", f"Could not load data:\n{e}")
        loop.run_until_complete(session.close())
        loop.close()
        sys.exit(1)

    window = MainWindow(session, loop)
    window.show()
    code = app.exec()

    loop.run_until_complete(session.close())
    loop.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
