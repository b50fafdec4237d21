"""Application bootstrapper for the peer marketplace."""
from __future__ import annotations

import csv
import logging

from .config import DEFAULT_CONFIG, AppConfig
from .models import InvalidArgumentError
from .services.marketplace import Marketplace
from .storage.repository import DelimitedMarketRepository
from .web.app import create_app

logger = logging.getLogger(__name__)


def bootstrap_marketplace(config: AppConfig = DEFAULT_CONFIG) -> tuple[Marketplace, DelimitedMarketRepository]:
    """Build the session graph, loading the previous session's streams if present.

    Load errors propagate to the caller.
    """

    config.ensure_data_directories()
    repository = DelimitedMarketRepository(config.data_directory, config.storage)
    marketplace = Marketplace()
    if repository.exists():
        logger.info("Loading marketplace data from %s", config.data_directory)
        repository.load(marketplace)
    return marketplace, repository


def save_session(repository: DelimitedMarketRepository, marketplace: Marketplace) -> bool:
    """Persist ``marketplace`` once at shutdown; failures are logged, not raised."""

    try:
        repository.save(marketplace)
    except (OSError, csv.Error, InvalidArgumentError):
        logger.exception("Saving marketplace data failed")
        return False
    return True


def run() -> None:
    """Entrypoint used by the CLI to launch the web UI."""

    logging.basicConfig(level=logging.INFO)
    config = DEFAULT_CONFIG
    marketplace, repository = bootstrap_marketplace(config)
    app = create_app(marketplace)
    try:
        app.run(debug=config.environment == "development", use_reloader=False)
    finally:
        save_session(repository, marketplace)


if __name__ == "__main__":  # pragma: no cover - manual execution only
    run()
