"""BaseService — foundation for pocctl services.

Every service receives the resolved :class:`PocSettings` at construction
time.  Runs open their own :class:`RunContext` (and HTTP client) and close it
when the run ends.
"""

from __future__ import annotations

from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pocctl.infrastructure.http import build_client
from pocctl.services.context import RunContext

if TYPE_CHECKING:
    import httpx

    from pocctl.config.settings import PocSettings


class BaseService:
    """Base for service-layer classes.

    Usage::

        class PocService(BaseService):
            def run(self, path: Path) -> ServiceResult:
                with self._run_context(target, variables) as ctx:
                    ...
    """

    def __init__(
        self,
        settings: PocSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @contextmanager
    def _run_context(
        self, target: str, variables: Mapping[str, Any]
    ) -> Generator[RunContext]:
        """Open a run-scoped context whose HTTP client closes on exit."""
        with build_client(self._settings.http, transport=self._transport) as client:
            yield RunContext(target=target, variables=variables, client=client)
