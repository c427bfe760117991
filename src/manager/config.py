"""
ManagerConfig — конфигурация Manager

Список relay, режимы ожидания, минимальная сложность PoW, таймауты и политика
переподключения. from_env() читает переменные окружения N3XB_*.
"""

import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from src.nostr import RelayOptions


DEFAULT_RELAY_URL = "ws://localhost:8008"
DEFAULT_POW_DIFFICULTY = 8

ENV_PREFIX = "N3XB_"


def _env_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in ("1", "true", "yes", "on"):
        return True
    if normalized in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"invalid boolean value {value!r}")


class ManagerConfig(BaseModel):
    """Конфигурация Manager (общая для пути публикации и пути подписки)"""

    relays: List[str] = Field(
        default_factory=lambda: [DEFAULT_RELAY_URL], min_length=1, description="URL relay"
    )
    wait_for_connection: bool = Field(True, description="Ждать рукопожатия при создании")
    wait_for_send: bool = Field(True, description="Ждать OK от relay при публикации")
    pow_difficulty: int = Field(
        DEFAULT_POW_DIFFICULTY, ge=0, description="Минимальная сложность PoW исходящих событий"
    )

    connect_timeout: float = Field(10.0, gt=0, description="Таймаут подключения (секунды)")
    send_timeout: float = Field(10.0, gt=0, description="Таймаут подтверждения (секунды)")
    queue_while_disconnected: bool = Field(
        False, description="publish ждёт переподключения вместо NotConnected"
    )

    reconnect: bool = True
    reconnect_max_attempts: int = Field(5, gt=0)
    reconnect_min_delay: float = Field(0.5, gt=0)
    reconnect_max_delay: float = Field(30.0, gt=0)

    model_config = {"frozen": True}

    @field_validator("relays")
    @classmethod
    def validate_relay_urls(cls, v: List[str]) -> List[str]:
        """Только ws:// и wss://, без дубликатов"""
        for url in v:
            if not url.startswith(("ws://", "wss://")):
                raise ValueError(f"relay url must use ws:// or wss://, got {url!r}")
        return list(dict.fromkeys(v))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ManagerConfig":
        """
        Конфигурация из переменных окружения.

        N3XB_RELAYS (через запятую), N3XB_WAIT_FOR_CONNECTION, N3XB_WAIT_FOR_SEND,
        N3XB_POW_DIFFICULTY, N3XB_CONNECT_TIMEOUT, N3XB_SEND_TIMEOUT.
        Незаданные переменные берут значения по умолчанию.
        """
        env = os.environ if environ is None else environ
        fields = {}

        relays = env.get(f"{ENV_PREFIX}RELAYS")
        if relays:
            fields["relays"] = [url.strip() for url in relays.split(",") if url.strip()]
        for name in ("wait_for_connection", "wait_for_send"):
            value = env.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                fields[name] = _env_bool(value)
        difficulty = env.get(f"{ENV_PREFIX}POW_DIFFICULTY")
        if difficulty is not None:
            fields["pow_difficulty"] = int(difficulty)
        for name in ("connect_timeout", "send_timeout"):
            value = env.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                fields[name] = float(value)

        return cls(**fields)

    def to_relay_options(self) -> RelayOptions:
        return RelayOptions(
            wait_for_connection=self.wait_for_connection,
            wait_for_send=self.wait_for_send,
            pow_difficulty=self.pow_difficulty,
            connect_timeout=self.connect_timeout,
            send_timeout=self.send_timeout,
            queue_while_disconnected=self.queue_while_disconnected,
            reconnect=self.reconnect,
            reconnect_max_attempts=self.reconnect_max_attempts,
            reconnect_min_delay=self.reconnect_min_delay,
            reconnect_max_delay=self.reconnect_max_delay,
        )
