import logging
import threading

from .constants import APP_NAME
from .errors import GitTideError
from .puller import Puller


class SyncScheduler:
    """Drives one eager pull per repository, then periodic background pulls.

    Every repository gets its own daemon thread; threads share no state and
    a failure in one never affects another. Timers are best-effort: there
    is no drift correction and missed ticks are not made up.

    Attributes:
        pullers (list[Puller]): The prepared repositories to synchronize.
        logger (logging.Logger): The logger tick failures are written to.
    """

    def __init__(self, pullers: list[Puller], logger: logging.Logger | None = None):
        self.pullers = pullers
        self.logger = logger or logging.getLogger(APP_NAME)
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        """Pulls every repository once, then starts the background loops.

        Raises:
            GitTideError: If an eager startup pull fails. Startup is expected
                          to abort; loops already started keep running until
                          `stop()` is called.
        """
        for puller in self.pullers:
            puller.pull()

            thread = threading.Thread(
                target=self._loop,
                args=(puller,),
                name=f"{APP_NAME}:{puller.name}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
            self.logger.info(
                f"SCHEDULED {puller.name}: every {puller.spec.interval}s"
            )

    def _loop(self, puller: Puller) -> None:
        while not self._stop.wait(puller.spec.interval):
            try:
                puller.pull()
            except GitTideError as e:
                self.logger.error(f"SYNC ERROR {puller.name}: {e}")
            except Exception:
                self.logger.exception(f"LOOP ERROR {puller.name}")

    def stop(self, timeout: float | None = None) -> None:
        """Signals every loop to exit and waits for the threads to finish.

        A loop blocked inside a git process exits once that process returns.
        """
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)

    def wait(self) -> None:
        """Blocks until `stop()` is called."""
        self._stop.wait()

    @property
    def running(self) -> bool:
        return bool(self._threads) and not self._stop.is_set()
