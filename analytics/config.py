from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


API_BASE = "https://mnowapi.web-dimension.com/api/v1/analytics"
LINKS_BASE = "https://s-qc.in"

REQUEST_TIMEOUT_SECONDS = 10.0
AUTO_REFRESH_SECONDS = 30.0

DEFAULT_PAGE_SIZE = 20
SUCCESS_RATE_THRESHOLD = 90.0
ACTIVE_USER_DAYS = 7

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@dataclass(frozen=True)
class Endpoint:
    url: str
    method: str = "GET"
    body: Optional[Dict[str, Any]] = None


ENDPOINTS: Dict[str, Endpoint] = {
    "userAnalytics": Endpoint(f"{API_BASE}/user/919015190754"),
    "summary": Endpoint(f"{API_BASE}/summary"),
    "completeAnalytics": Endpoint(API_BASE),
    "categoriesAnalytics": Endpoint(f"{API_BASE}/categories"),
    "smartLinks": Endpoint(f"{LINKS_BASE}/fetchSmartLinkByUser/676410d092064c3242909930", method="POST"),
    "qrAnalytics": Endpoint(f"{LINKS_BASE}/fetchQrById/688b10f5fa588e8292a81ed5"),
}

CACHE_KEYS: Tuple[str, ...] = tuple(ENDPOINTS)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
