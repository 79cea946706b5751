"""
Shared HTTP plumbing for upstream fetchers
"""
import logging
from typing import Dict, Optional

import requests

from config import Config
from utils.errors import MalformedResponseError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


class UpstreamClient:
    """
    Thin wrapper over a requests session: default headers, a per-call
    timeout, and failures mapped onto the upstream error taxonomy
    """

    source_name = "upstream"

    def __init__(self, session: Optional[requests.Session] = None,
                 headers: Optional[Dict[str, str]] = None,
                 timeout: Optional[float] = None):
        self.session = session or requests.Session()
        self.headers = dict(headers or {})
        self.timeout = timeout or Config.REQUEST_TIMEOUT

    def _get(self, url: str, params: Optional[Dict] = None):
        logger.debug(f"[{self.source_name}] GET {url} {params or ''}")
        try:
            response = self.session.get(url, params=params, headers=self.headers,
                                        timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise UpstreamUnavailableError(self.source_name, f"{url} returned {status}",
                                           status_code=status) from e
        except requests.RequestException as e:
            raise UpstreamUnavailableError(self.source_name, f"{url} failed: {e}") from e
        return response

    def _get_json(self, url: str, params: Optional[Dict] = None) -> Dict:
        response = self._get(url, params)
        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(self.source_name, f"invalid JSON from {url}") from e
        if not isinstance(payload, dict):
            raise MalformedResponseError(self.source_name, f"unexpected JSON body from {url}")
        return payload

    def _get_text(self, url: str, params: Optional[Dict] = None) -> str:
        return self._get(url, params).text
