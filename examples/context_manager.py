"""
Example of using DatadogHandler as a context manager, configured from the environment.
"""

import logging

from ddsend import DatadogHandler, load_config


def main():
    # Reads DATADOG_APIKEY, DATADOG_HOST, DATADOG_TAGS, ...
    config = load_config()

    logger = logging.getLogger("events")
    logger.setLevel(logging.INFO)

    with DatadogHandler.from_config(config) as handler:
        logger.addHandler(handler)
        logger.info("Application started")

        for i in range(20):
            logger.info(f"Processing item {i}", extra={"item_id": i})

        logger.info("Application finished successfully")
        logger.removeHandler(handler)

    # Handler is closed here and remaining logs have been sent
    print("Done!")


if __name__ == "__main__":
    main()
