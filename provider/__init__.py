"""speedtest.net measurement provider -- discovery, latency and throughput."""

from .api import ClientInfo, ProviderError, Server, SpeedtestAPI, find_server
from .download import DownloadTester
from .latency import LatencyResult, LatencyTester
from .service import SpeedtestNetProvider
from .stats import calculate_iqm, calculate_jitter, format_latency, format_speed
from .transfer import TransferResult
from .upload import UploadTester

__all__ = [
    "ClientInfo",
    "DownloadTester",
    "LatencyResult",
    "LatencyTester",
    "ProviderError",
    "Server",
    "SpeedtestAPI",
    "SpeedtestNetProvider",
    "TransferResult",
    "UploadTester",
    "calculate_iqm",
    "calculate_jitter",
    "find_server",
    "format_latency",
    "format_speed",
]
