"""
speedtest.net endpoints and measurement tunables.

The ``DEFAULT_*`` values are what a scrape uses unless the exporter config
overrides them; ``MIN_*`` / ``MAX_*`` bound what the config may ask for.
"""

# Ookla servers reject requests that do not look like they come from the web client.
COMMON_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
    ),
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    "Origin": "https://www.speedtest.net",
    "Referer": "https://www.speedtest.net/",
}

BASE_URL = "https://www.speedtest.net"
SERVERS_URL = f"{BASE_URL}/api/js/servers"
HTTP_TIMEOUT = 30.0

# Server discovery
DEFAULT_SERVER_LIMIT = 10

# Latency
DEFAULT_PING_COUNT = 10
MIN_PING_COUNT, MAX_PING_COUNT = 1, 100

# Download / upload
DEFAULT_DURATION = 10.0
MIN_DURATION, MAX_DURATION = 1.0, 60.0
DEFAULT_CONNECTIONS = 4
MIN_CONNECTIONS, MAX_CONNECTIONS = 1, 32

WARMUP_SECONDS = 2.0
SAMPLE_INTERVAL = 0.25
MAX_REASONABLE_SPEED = 20_000.0  # Mbit/s

CHUNK_SIZE = 256 * 1024
DOWNLOAD_FILE_SIZE = 50_000_000
UPLOAD_BUFFER_SIZE = 1024 * 1024
