"""
speedtest.net collector.

Picks a server (nearest, or a configured ID), then runs latency, download
and upload tests against it one after the other.  A failing sub-test is
logged and reported through ``speedtest_up`` but does not stop the others.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, List, Optional, Protocol, Tuple

from prometheus_client.core import GaugeMetricFamily

from provider import ProviderError

from .errors import (
    NoServers,
    RunError,
    ServerLookupFailure,
    ServerMismatch,
    ServerNotFound,
    UserInfoFailure,
)
from .metrics import SPEEDTEST, MetricSpec
from .units import mbps_to_bytes_per_second, ms_to_seconds

LOGGER = logging.getLogger(__name__)

SERVER_ID_NEAREST = -1


class MeasurementProvider(Protocol):
    """What the runner needs from a speed-test service client."""

    def fetch_user_info(self) -> Any: ...

    def fetch_servers(self) -> List[Any]: ...

    def find_server(self, servers: List[Any], ids: Iterable[int]) -> List[Any]: ...

    def ping_test(self, server: Any) -> float: ...

    def download_test(self, server: Any) -> float: ...

    def upload_test(self, server: Any) -> float: ...


@dataclass(frozen=True)
class ServerTarget:
    """The server measured in one cycle, plus the user's ISP."""

    id: str
    name: str
    country: str
    user_isp: str
    server: Any = field(default=None, compare=False, repr=False)

    def label_values(self) -> Tuple[str, str, str, str]:
        return (self.id, self.name, self.country, self.user_isp)


@dataclass
class SubTestResult:
    name: str
    metric: MetricSpec
    value: Optional[float] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class PartialResult:
    target: ServerTarget
    results: List[SubTestResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    def get(self, name: str) -> Optional[SubTestResult]:
        return next((r for r in self.results if r.name == name), None)


class SpeedtestRunner:
    """Server selection and the three sub-tests of one measurement cycle."""

    def __init__(
        self,
        provider: MeasurementProvider,
        server_id: int = SERVER_ID_NEAREST,
        server_fallback: bool = False,
    ) -> None:
        self.provider = provider
        self.server_id = server_id
        self.server_fallback = server_fallback

    def select_target(self) -> ServerTarget:
        try:
            user = self.provider.fetch_user_info()
        except ProviderError as exc:
            raise UserInfoFailure(f"could not fetch user information: {exc}") from exc

        try:
            servers = self.provider.fetch_servers()
        except ProviderError as exc:
            raise NoServers(f"could not fetch server list: {exc}") from exc
        if not servers:
            raise NoServers("no servers found")

        if self.server_id == SERVER_ID_NEAREST:
            server = servers[0]
        else:
            server = self._lookup(servers)

        return ServerTarget(
            id=str(server.id),
            name=server.name,
            country=server.country,
            user_isp=user.isp,
            server=server,
        )

    def _lookup(self, servers: List[Any]) -> Any:
        try:
            found = self.provider.find_server(servers, [self.server_id])
        except ProviderError as exc:
            raise ServerLookupFailure(f"lookup of server ID {self.server_id} failed: {exc}") from exc

        if not found:
            raise ServerNotFound(
                f"could not find server ID {self.server_id} in the list of available servers"
            )

        server = found[0]
        if str(server.id) != str(self.server_id):
            if not self.server_fallback:
                raise ServerMismatch(self.server_id, str(server.id))
            LOGGER.warning(
                "server ID %d not available, falling back to server %s (%s)",
                self.server_id, server.id, server.name,
            )
        return server

    def sub_tests(self, target: ServerTarget) -> Iterator[SubTestResult]:
        """Run latency, download and upload in order, yielding each outcome."""
        plan: List[Tuple[str, MetricSpec, Callable[[Any], float], Callable[[float], float]]] = [
            ("latency", SPEEDTEST.latency, self.provider.ping_test, ms_to_seconds),
            ("download", SPEEDTEST.download, self.provider.download_test, mbps_to_bytes_per_second),
            ("upload", SPEEDTEST.upload, self.provider.upload_test, mbps_to_bytes_per_second),
        ]
        for name, metric, test, convert in plan:
            try:
                raw = test(target.server)
            except ProviderError as exc:
                LOGGER.error("failed to carry out %s test: %s", name, exc)
                yield SubTestResult(name, metric, error=str(exc))
                continue
            yield SubTestResult(name, metric, value=convert(raw))

    def run(self) -> PartialResult:
        target = self.select_target()
        return PartialResult(target=target, results=list(self.sub_tests(target)))


class SpeedtestCollector:
    """Prometheus collector running one speedtest.net cycle per ``collect()``."""

    def __init__(
        self,
        provider: MeasurementProvider,
        server_id: int = SERVER_ID_NEAREST,
        server_fallback: bool = False,
    ) -> None:
        self.runner = SpeedtestRunner(provider, server_id=server_id, server_fallback=server_fallback)

    def describe(self) -> List[GaugeMetricFamily]:
        return SPEEDTEST.describe()

    def collect(self) -> Iterator[GaugeMetricFamily]:
        start = time.perf_counter()
        ok = False

        try:
            target = self.runner.select_target()
        except RunError as exc:
            LOGGER.error("speedtest: %s: %s", exc.kind, exc)
        else:
            ok = True
            labels = target.label_values()
            for outcome in self.runner.sub_tests(target):
                if outcome.success:
                    yield outcome.metric.sample(outcome.value, labels)
                else:
                    ok = False
            LOGGER.info(
                "speedtest: cycle against server %s (%s) %s",
                target.id, target.name, "succeeded" if ok else "failed",
            )

        yield SPEEDTEST.up.sample(1.0 if ok else 0.0)
        yield SPEEDTEST.scrape_duration.sample(time.perf_counter() - start)
