# process-wide generation state: a single-flight admission gate plus the stop flag.
# only the orchestrator flips `loading`; the stop flag is raised by whoever wants to cancel
# and cleared by the caller between requests, never by the orchestrator.

import threading
from dataclasses import dataclass


@dataclass
class CancellationToken:
    stop_requested: bool = False

    def cancel(self) -> None:
        self.stop_requested = True

    def reset(self) -> None:
        self.stop_requested = False


class GenerationStatus:
    def __init__(self) -> None:
        self._loading = False
        self._lock = threading.Lock()
        self.cancel = CancellationToken()

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def stop_requested(self) -> bool:
        return self.cancel.stop_requested

    def request_stop(self) -> None:
        self.cancel.cancel()

    def try_acquire(self) -> bool:
        """Flip loading False -> True. Returns False if a generation is already running."""
        with self._lock:
            if self._loading:
                return False
            self._loading = True
            return True

    def release(self) -> None:
        with self._lock:
            self._loading = False


generation_status = GenerationStatus()
