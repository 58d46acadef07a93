"""Duet configuration.

DuetConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass

from duet._errors import ConfigError


@dataclass(frozen=True, slots=True)
class DuetConfig:
    """Configuration for a duet server.

    Attributes:
        host: Bind address.
        port: Bind port.
        debug: Run chirp in debug mode.
        stream_path: SSE endpoint the browser connects to for renders.
        event_path: POST endpoint receiving event envelopes.
        stats_path: JSON endpoint exposing event-log statistics.
        default_width: Surface width for bindings that set none.
        default_height: Surface height for bindings that set none.
        max_events: Capacity of the observability event log.
        inject_client: Inject the browser client script into HTML responses.

    """

    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = False
    stream_path: str = "/__duet/stream"
    event_path: str = "/__duet/event"
    stats_path: str = "/__duet/stats"
    default_width: int = 960
    default_height: int = 540
    max_events: int = 10_000
    inject_client: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.port, int) or isinstance(self.port, bool) or not 0 <= self.port <= 65535:
            raise ConfigError(f"port must be an integer in 0..65535, got {self.port!r}")
        for key in ("default_width", "default_height", "max_events"):
            value = getattr(self, key)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigError(f"{key} must be a positive integer, got {value!r}")
        paths = (self.stream_path, self.event_path, self.stats_path)
        for path in paths:
            if not isinstance(path, str) or not path.startswith("/"):
                raise ConfigError(f"endpoint paths must start with '/', got {path!r}")
        if len(set(paths)) != len(paths):
            raise ConfigError("stream_path, event_path and stats_path must differ")

    @property
    def url(self) -> str:
        """Base URL the server listens on."""
        return f"http://{self.host}:{self.port}"
