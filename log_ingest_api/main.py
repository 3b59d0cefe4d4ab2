"""Entry point for the log ingestion API."""

import logging
import os
import sys

from log_ingest_api.app import build_store, create_app
from log_ingest_api.config import Config


def main():
    config = Config(os.environ.get("CONFIG_PATH", "config.yaml"))
    logging.basicConfig(
        level=str(config["logging"]["level"]).upper(),
        format=config["logging"]["format"],
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    store = build_store(config)
    try:
        app = create_app(config, store=store)
        server = config["server"]
        logger.info("Starting log ingestion API on %s:%d (store=%s, profile=%s)",
                    server["host"], server["port"], config["store"]["backend"],
                    config["validation"]["profile"])
        app.run(host=server["host"], port=server["port"], debug=server["debug"], threaded=True)
    except Exception:
        logger.critical("Application terminated unexpectedly", exc_info=True)
        raise
    finally:
        store.close()


if __name__ == "__main__":
    main()
