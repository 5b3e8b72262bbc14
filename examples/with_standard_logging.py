"""
Example of using DatadogHandler with Python's standard logging module.
"""

import logging
import os

from ddsend import DATADOG_US_HOST, DatadogHandler, Options


def main():
    handler = DatadogHandler(
        api_key=os.environ["DATADOG_APIKEY"],
        host=DATADOG_US_HOST,
        batch_interval=5.0,             # Flush every 5 seconds
        max_retry=3,
        level=logging.INFO,
        options=Options(
            source="python",
            service="my-app",
            hostname=os.uname().nodename,
            tags=("env:development", "version:1.0.0"),
        ),
        debug=True,                     # Report failed sends
    )

    logger = logging.getLogger("my_app")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    try:
        logger.debug("Not shipped, below INFO")
        logger.info("Info message with extra", extra={"user_id": 42})
        logger.warning("Warning message")

        try:
            raise ValueError("Something went wrong!")
        except ValueError:
            logger.exception("Caught an exception")

        for i in range(10):
            logger.info(f"Processing step {i}")

    finally:
        # Sends whatever is still buffered
        handler.close()


if __name__ == "__main__":
    main()
