# =========================
# CalcBot v1: Session (presentation boundary with typing delay)
# =========================
# Public API:
#   - class ChatSession(reply, engine=None, ...)
#       .open()          -> schedules the welcome line
#       .submit(text)    -> schedules the bot reply (blank text is dropped)
#       .drain()/.close()-> wait for every pending reply
#   - typing_delay_ms(text) -> int
#
# Notes:
#   * The engine runs synchronously inside submit(); only delivery is deferred.
#   * Every reply is its own asyncio task; a task waits for the one before it
#     before delivering, so replies arrive in submission order.
#   * Pending replies are not cancelled by the session.

from __future__ import annotations
from typing import Callable, List, Optional
import asyncio
import logging

from calcbot_engine import (
    CalcBotEngine, MSG_WELCOME,
    TYPING_BASE_MS, TYPING_PER_CHAR_MS, TYPING_MAX_MS,
)

logger = logging.getLogger(__name__)

DEFAULT_CONVERSATION_ID = "default"


def typing_delay_ms(text: str) -> int:
    return min(TYPING_BASE_MS + len(text) * TYPING_PER_CHAR_MS, TYPING_MAX_MS)


class ChatSession:
    def __init__(
        self,
        reply: Callable[[str], None],
        engine: Optional[CalcBotEngine] = None,
        conversation_id: str = DEFAULT_CONVERSATION_ID,
        delay_scale: float = 1.0,
        typing: Optional[Callable[[bool], None]] = None,
    ):
        self.reply = reply
        self.engine = engine if engine is not None else CalcBotEngine()
        self.conversation_id = conversation_id
        self.delay_scale = delay_scale
        self.typing = typing
        self._last: Optional[asyncio.Task] = None
        self._pending: List[asyncio.Task] = []

    def open(self) -> asyncio.Task:
        logger.info("session %s opened", self.conversation_id)
        return self._schedule(MSG_WELCOME)

    def submit(self, raw_text: str) -> Optional[asyncio.Task]:
        """Process one user line now; deliver the answer after the typing delay."""
        text = (raw_text or "").strip()
        if not text:
            return None
        out = self.engine.handle(self.conversation_id, text)
        return self._schedule(out)

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        await self.drain()
        logger.info("session %s closed", self.conversation_id)

    def _schedule(self, text: str) -> asyncio.Task:
        if self.typing:
            self.typing(True)
        delay = typing_delay_ms(text) * self.delay_scale / 1000.0
        task = asyncio.get_running_loop().create_task(self._deliver(text, delay, self._last))
        self._last = task
        self._pending.append(task)
        task.add_done_callback(self._pending.remove)
        return task

    async def _deliver(self, text: str, delay: float, previous: Optional[asyncio.Task]) -> None:
        await asyncio.sleep(delay)
        if previous is not None:
            await previous
        if self.typing:
            self.typing(False)
        self.reply(text)
