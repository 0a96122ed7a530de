"""Blocking HTTP client factory for rule requests.

No headers are added beyond httpx defaults.  Every request is bounded by the
configured timeout so an unresponsive target cannot stall a run.
"""

from __future__ import annotations

import httpx

from pocctl.config.models import HttpConfig


def build_client(
    config: HttpConfig,
    *,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create a client for one run.

    Args:
        config: ``[http]`` settings (timeout, redirects, TLS verification).
        transport: Optional transport override (tests use ``httpx.MockTransport``).
    """
    return httpx.Client(
        timeout=config.timeout,
        follow_redirects=config.follow_redirects,
        verify=config.verify_tls,
        transport=transport,
    )
