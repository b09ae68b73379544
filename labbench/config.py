import os

from labbench.errors import ConfigurationError

# The port the echo server has always used; LABBENCH_PORT overrides it
FALLBACK_PORT = 1144
DEFAULT_HOST = "0.0.0.0"
LOOPBACK_HOST = "127.0.0.1"

DEFAULT_REPEATS = 5
DEFAULT_TRANSCODE_SECONDS = 30.0
DEFAULT_TIMEOUT_S = 30.0

# Receive/read buffer size, reused across reads
CHUNK_SIZE = 64 * 1024

FFMPEG_BINARY = os.environ.get("LABBENCH_FFMPEG", "ffmpeg")


def get_default_port() -> int:
    """Get the echo server port from the environment.

    Raises:
        ConfigurationError: if LABBENCH_PORT is not a valid port number
    """
    raw = os.environ.get("LABBENCH_PORT")
    if raw is None:
        return FALLBACK_PORT
    try:
        port = int(raw)
    except ValueError:
        raise ConfigurationError(f"LABBENCH_PORT must be a port number, got {raw!r}") from None
    if not 1 <= port <= 65535:
        raise ConfigurationError(f"LABBENCH_PORT must be between 1 and 65535, got {port}")
    return port


def get_ffmpeg_binary() -> str:
    """Get the configured ffmpeg executable name or path."""
    return FFMPEG_BINARY
