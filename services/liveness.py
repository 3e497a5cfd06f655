"""Background demotion of devices that stopped reporting."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta
from threading import Event, Lock, Thread
from typing import Dict, Optional

from services.registry import Clock, DeviceRegistry, utcnow

logger = logging.getLogger(__name__)


class LivenessMonitor:
    """Periodically moves devices from active to inactive after a heartbeat timeout.

    Each pass only acts on devices already present in the registry. A failure
    or a soft-deadline overrun for one device is logged and left for the next
    pass; the remaining devices are still processed. A device whose previous
    check has not returned yet is not submitted again.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        timeout_seconds: float = 300.0,
        interval_seconds: float = 60.0,
        device_deadline_seconds: float = 1.0,
        enabled: bool = True,
        clock: Clock = utcnow,
        workers: int = 2,
    ) -> None:
        self.registry = registry
        self.timeout = timedelta(seconds=timeout_seconds)
        self.interval_seconds = interval_seconds
        self.device_deadline_seconds = device_deadline_seconds
        self.enabled = enabled
        self._clock = clock
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="liveness")
        self._stop_event = Event()
        self._thread: Optional[Thread] = None
        self._thread_lock = Lock()
        self._in_flight: Dict[str, Future[bool]] = {}

    def run_pass(self, now: Optional[datetime] = None) -> list[str]:
        """Sweep every known device once and return the ids that were demoted."""
        if not self.enabled:
            return []

        started = time.perf_counter()
        current = now or self._clock()
        try:
            devices = self.registry.list()
        except Exception as exc:  # noqa: BLE001 - retried on the next pass
            logger.warning("Liveness pass could not list devices", extra={"reason": str(exc)})
            return []

        demoted: list[str] = []
        for device in devices:
            pending = self._in_flight.get(device.device_id)
            if pending is not None and not pending.done():
                logger.warning(
                    "Previous liveness check still running",
                    extra={"device_id": device.device_id, "reason": "in_flight"},
                )
                continue
            future: Future[bool] = self.executor.submit(
                self.registry.expire,
                device.device_id,
                current,
                self.timeout,
                self.device_deadline_seconds,
            )
            self._in_flight[device.device_id] = future
            try:
                if future.result(timeout=self.device_deadline_seconds):
                    demoted.append(device.device_id)
            except FutureTimeoutError:
                logger.warning(
                    "Liveness check exceeded its deadline",
                    extra={"device_id": device.device_id, "reason": "deadline"},
                )
            except Exception as exc:  # noqa: BLE001 - one device must not abort the pass
                logger.warning(
                    "Liveness check failed",
                    extra={"device_id": device.device_id, "reason": str(exc)},
                )

        logger.debug(
            "Liveness pass finished",
            extra={
                "device_count": len(devices),
                "elapsed_ms": int((time.perf_counter() - started) * 1000),
            },
        )
        return demoted

    def start(self) -> None:
        if not self.enabled:
            return
        with self._thread_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event.clear()
            self._thread = Thread(target=self._run, name="liveness-monitor", daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        with self._thread_lock:
            thread = self._thread
            self._thread = None
        if thread is not None:
            thread.join(timeout=timeout)

    def shutdown(self) -> None:
        self.stop()
        self.executor.shutdown(wait=False, cancel_futures=True)

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_pass()
            except Exception:  # noqa: BLE001 - keep the monitor alive
                logger.exception("Liveness pass crashed")
