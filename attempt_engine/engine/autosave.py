# -*- coding: utf-8 -*-
"""
Progress autosave scheduler.

All save triggers go through :meth:`AutosaveScheduler.request_save`:

- ``edit``: debounced, the last edit within the window wins
- ``interval``: forced periodically while the attempt is running
- ``visibility_hidden`` and ``manual``: flushed immediately

A save is skipped, not failed, while another one is in flight or once the
attempt has left ``in_progress``. Transient failures are retried with
exponential backoff.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from attempt_engine.config.logger import configure_logger
from attempt_engine.config.settings import settings
from attempt_engine.domain.enums import SaveReason
from attempt_engine.utils.exceptions import APIException

logger = configure_logger(__name__)

SaveCallback = Callable[[SaveReason], Awaitable[None]]


def is_transient(error: BaseException) -> bool:
    if isinstance(error, APIException):
        return error.is_transient
    return isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError))


class AutosaveScheduler:
    def __init__(
        self,
        save: SaveCallback,
        can_save: Callable[[], bool],
        debounce_seconds: Optional[float] = None,
        interval_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._save = save
        self._can_save = can_save
        self.debounce_seconds = (
            settings.autosave_debounce_seconds
            if debounce_seconds is None
            else debounce_seconds
        )
        self.interval_seconds = (
            settings.autosave_interval_seconds
            if interval_seconds is None
            else interval_seconds
        )
        self.max_retries = (
            settings.autosave_max_retries if max_retries is None else max_retries
        )
        self.retry_base_delay = (
            settings.autosave_retry_base_delay_seconds
            if retry_base_delay is None
            else retry_base_delay
        )
        self._on_error = on_error

        self._debounce_task: Optional[asyncio.Task] = None
        self._interval_task: Optional[asyncio.Task] = None
        self._in_flight = False
        self._stopped = False
        self.saves_completed = 0
        self.saves_skipped = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def running(self) -> bool:
        return not self._stopped and self._interval_task is not None

    def start(self) -> None:
        """Start the periodic save loop."""
        if self._interval_task is None and not self._stopped:
            self._interval_task = asyncio.create_task(self._interval_loop())

    async def request_save(self, reason: SaveReason) -> bool:
        """
        Ask for a save.

        ``edit`` only (re)arms the debounce timer and returns ``False``. The
        other reasons save right away and return ``True`` when a save ran.
        A ``manual`` save re-raises the final error; the others report it to
        ``on_error``.
        """
        if self._stopped:
            return False
        reason = SaveReason(reason)
        if reason == SaveReason.EDIT:
            self._cancel_debounce()
            self._debounce_task = asyncio.create_task(self._debounced())
            return False

        # an immediate save covers whatever the debounce was waiting for
        self._cancel_debounce()
        return await self._run(reason)

    async def flush(self) -> bool:
        """Run a pending debounced save now, if any."""
        if self._debounce_task is None or self._debounce_task.done():
            return False
        self._cancel_debounce()
        return await self._run(SaveReason.EDIT)

    def stop(self) -> None:
        """Cancel all timers. Safe to call more than once."""
        self._stopped = True
        self._cancel_debounce()
        if self._interval_task is not None:
            self._interval_task.cancel()
            self._interval_task = None

    async def _debounced(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        self._debounce_task = None
        await self._run(SaveReason.EDIT)

    async def _interval_loop(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval_seconds)
            await self._run(SaveReason.INTERVAL)

    async def _run(self, reason: SaveReason) -> bool:
        if self._stopped or not self._can_save():
            self.saves_skipped += 1
            logger.debug(f"Autosave ({reason.value}) skipped: attempt not in progress")
            return False
        if self._in_flight:
            self.saves_skipped += 1
            logger.debug(f"Autosave ({reason.value}) skipped: save already in flight")
            return False

        self._in_flight = True
        try:
            saved = await self._save_with_retry(reason)
            if saved:
                self.saves_completed += 1
            return saved
        except Exception as e:
            if reason == SaveReason.MANUAL:
                raise
            if self._on_error is not None:
                self._on_error(e)
            return False
        finally:
            self._in_flight = False

    async def _save_with_retry(self, reason: SaveReason) -> bool:
        attempt = 0
        while True:
            try:
                await self._save(reason)
                return True
            except Exception as e:
                if not is_transient(e) or attempt >= self.max_retries:
                    logger.warning(
                        f"Autosave ({reason.value}) failed after {attempt + 1} tries: {e}"
                    )
                    raise
                delay = self.retry_base_delay * (2**attempt)
                attempt += 1
                logger.info(
                    f"Autosave ({reason.value}) transient failure, retry {attempt}/{self.max_retries} in {delay:.2f}s: {e}"
                )
                await asyncio.sleep(delay)
                if self._stopped or not self._can_save():
                    logger.debug(
                        f"Autosave ({reason.value}) abandoned: attempt no longer in progress"
                    )
                    return False

    def _cancel_debounce(self) -> None:
        task = self._debounce_task
        self._debounce_task = None
        # a debounced task clears its slot before saving, so only sleepers land here
        if task is not None and not task.done():
            task.cancel()
