import time
from typing import Callable

from visitguard.config.settings import settings


class PrescriptionDebouncer:
    """Lets each drug through once per cooldown window.

    Keys are case-insensitive. The window is fixed from the first accepted
    detection: repeats inside it are rejected without extending it.
    """

    def __init__(
        self,
        cooldown_seconds: float = settings.PRESCRIPTION_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._opened_at: dict[str, float] = {}

    def should_fire(self, drug_key: str, now: float | None = None) -> bool:
        key = (drug_key or "").strip().lower()
        if not key:
            return False
        now = self._clock() if now is None else now
        opened_at = self._opened_at.get(key)
        if opened_at is not None and now - opened_at < self.cooldown_seconds:
            return False
        self._opened_at[key] = now
        return True

    def reset(self) -> None:
        self._opened_at.clear()
