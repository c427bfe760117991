"""
Proof-of-Work — поиск nonce, дающего id с заданным числом ведущих нулевых бит

Тег ["nonce", "<n>", "<target>"] меняется, пока id события не наберёт
target ведущих нулевых бит. Поиск выполняется в рабочем потоке, чтобы не
блокировать event loop; отмена ожидающей задачи останавливает перебор.
"""

import asyncio
import logging
import threading
import time
from typing import Optional

from .event import EventDraft, compute_event_id, count_leading_zero_bits

logger = logging.getLogger(__name__)

NONCE_TAG = "nonce"

# Как часто (в итерациях) проверяется флаг отмены
_STOP_CHECK_INTERVAL = 1024


class MiningCancelled(Exception):
    """Перебор остановлен флагом отмены"""


def mine(
    draft: EventDraft,
    pubkey: str,
    difficulty: int,
    stop: Optional[threading.Event] = None,
) -> EventDraft:
    """
    Поиск nonce для draft.

    Args:
        draft: Неподписанное событие
        pubkey: Публичный ключ, которым событие будет подписано (входит в id)
        difficulty: Требуемое число ведущих нулевых бит (> 0)
        stop: Флаг отмены

    Returns:
        Новый draft с тегом nonce, id которого удовлетворяет difficulty

    Raises:
        MiningCancelled: Если установлен флаг stop
    """
    if difficulty <= 0:
        raise ValueError(f"difficulty must be > 0, got {difficulty}")

    base_tags = [t for t in draft.tags if not t or t[0] != NONCE_TAG]
    target = str(difficulty)
    started = time.perf_counter()
    nonce = 0
    while True:
        if nonce % _STOP_CHECK_INTERVAL == 0 and stop is not None and stop.is_set():
            raise MiningCancelled(f"mining stopped after {nonce} attempts")
        tags = base_tags + [[NONCE_TAG, str(nonce), target]]
        event_id = compute_event_id(pubkey, draft.created_at, draft.kind, tags, draft.content)
        if count_leading_zero_bits(event_id) >= difficulty:
            logger.debug(
                "pow difficulty=%d found after %d attempts in %.3fs",
                difficulty,
                nonce + 1,
                time.perf_counter() - started,
            )
            return draft.model_copy(update={"tags": tags})
        nonce += 1


async def mine_async(draft: EventDraft, pubkey: str, difficulty: int) -> EventDraft:
    """
    Асинхронная обёртка над mine(): перебор в executor event loop.

    Отмена ожидающей корутины выставляет флаг stop, и поток завершает перебор.
    """
    stop = threading.Event()
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, mine, draft, pubkey, difficulty, stop)
    try:
        return await future
    except asyncio.CancelledError:
        stop.set()
        raise
