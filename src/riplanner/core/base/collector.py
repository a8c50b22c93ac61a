from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
import threading


@dataclass
class CollectorConfig:
    """Configuration for inventory collectors"""
    regions: List[str] = field(default_factory=list)
    max_workers: int = 10
    timeout: int = 300


class BaseCollector(ABC):
    """Fans lookups out over worker threads and merges their results under a lock"""

    def __init__(self, config: Optional[CollectorConfig] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.config = config or CollectorConfig()
        self.cancel_event = cancel_event or threading.Event()
        self.logger = logging.getLogger(self.__class__.__name__)
        self.errors: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    @abstractmethod
    def collect(self) -> Any:
        """Collect data from the cloud provider"""
        pass

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def collect_parallel(self, tasks: Dict[str, Callable[[threading.Event], Any]],
                         merge: Callable[[str, Any], None]) -> int:
        """
        Execute collection functions in parallel.

        Each task receives the cancellation event and owns its own clients.
        ``merge(name, result)`` runs under the collector lock, never while a
        network call is in flight. Failed tasks are logged and recorded in
        ``self.errors``. Returns the number of tasks that succeeded.
        """
        succeeded = 0
        if not tasks:
            return succeeded

        with ThreadPoolExecutor(max_workers=min(self.config.max_workers, len(tasks))) as executor:
            futures = {executor.submit(func, self.cancel_event): name for name, func in tasks.items()}

            for future in as_completed(futures):
                name = futures[future]
                try:
                    result = future.result(timeout=self.config.timeout)
                except Exception as e:
                    self.logger.warning(f"Error collecting from {name}: {str(e)}")
                    self.errors.append({
                        "task": name,
                        "error": str(e),
                        "timestamp": datetime.now()
                    })
                    continue

                # Partial results of cancelled workers are still merged
                with self._lock:
                    merge(name, result)
                succeeded += 1
                self.logger.debug(f"Collected results from {name}")

        return succeeded

    def get_summary(self) -> Dict[str, Any]:
        """Get collection summary"""
        return {
            "total_errors": len(self.errors),
            "cancelled": self.cancelled,
            "errors": self.errors
        }
