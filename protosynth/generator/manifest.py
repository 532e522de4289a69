"""Service registration manifest shared by every generation unit of an invocation."""

import logging
import threading

from .sinks import OutputSink

logger = logging.getLogger(__name__)

SERVICE_NAME = "protosynth.runtime.SerializationContextInitializer"
SERVICES_DIR = "META-INF/services"


class ServiceRegistrationManifest:
    """Accumulates generated initializer names and publishes them once.

    Appends may come from several units; they are serialised with a lock.
    Providers keep insertion order and are never listed twice.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: dict[str, dict[str, None]] = {}
        self._flushed = False

    def add_provider(self, service: str, provider: str) -> None:
        with self._lock:
            self._providers.setdefault(service, {})[provider] = None

    def providers(self, service: str = SERVICE_NAME) -> list[str]:
        with self._lock:
            return list(self._providers.get(service, {}))

    @property
    def flushed(self) -> bool:
        return self._flushed

    def flush(self, sink: OutputSink) -> None:
        """Write one manifest file per service. Later calls do nothing."""
        with self._lock:
            if self._flushed:
                logger.debug("Service manifest already flushed")
                return
            self._flushed = True
            services = {k: list(v) for k, v in self._providers.items() if v}

        for service, providers in services.items():
            path = f"{SERVICES_DIR}/{service}"
            merged: dict[str, None] = {}
            if sink.exists(path):
                for line in sink.read(path).splitlines():
                    line = line.strip()
                    if line and not line.startswith("#"):
                        merged[line] = None
            for provider in providers:
                merged[provider] = None

            sink.write(path, "".join(f"{p}\n" for p in merged), overwrite=True)
            logger.debug("Registered %d provider(s) for %s", len(merged), service)
