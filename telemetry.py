# telemetry.py
import logging

import requests

from errors import FetchError

logger = logging.getLogger(__name__)


class TelemetryClient:
    """Fetches the full sensor snapshot from the IoT endpoint."""

    def __init__(self, url, timeout=10):
        self.url = url
        self.timeout = timeout

    def fetch(self):
        logger.info("Requesting telemetry snapshot from %s", self.url)
        try:
            resp = requests.get(self.url, timeout=self.timeout)
        except requests.Timeout as e:
            raise FetchError("Telemetry request timed out after %ss" % self.timeout) from e
        except requests.RequestException as e:
            raise FetchError("Telemetry request failed: %s" % e) from e

        if not 200 <= resp.status_code < 300:
            raise FetchError("Telemetry endpoint answered %d" % resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError("Telemetry endpoint did not return JSON") from e
