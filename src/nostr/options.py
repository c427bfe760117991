"""Options — параметры соединения с relay."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RelayOptions:
    """Параметры соединения (общие для всех relay пула).

    - wait_for_connection: connect() блокируется до рукопожатия (иначе фон)
    - wait_for_send: publish() ждёт OK от relay (иначе возврат после отправки)
    - pow_difficulty: минимальная сложность PoW для всех исходящих событий
    - queue_while_disconnected: publish ждёт переподключения вместо NotConnected
    """

    wait_for_connection: bool = True
    wait_for_send: bool = True
    pow_difficulty: int = 0

    # Таймауты (секунды)
    connect_timeout: float = 10.0
    send_timeout: float = 10.0

    queue_while_disconnected: bool = False

    # Переподключение с экспоненциальной задержкой
    reconnect: bool = True
    reconnect_max_attempts: int = 5
    reconnect_min_delay: float = 0.5
    reconnect_max_delay: float = 30.0

    def __post_init__(self):
        if self.pow_difficulty < 0:
            raise ValueError(f"pow_difficulty must be >= 0, got {self.pow_difficulty}")
        if self.connect_timeout <= 0 or self.send_timeout <= 0:
            raise ValueError("timeouts must be > 0")
        if self.reconnect_max_attempts <= 0:
            raise ValueError("reconnect_max_attempts must be > 0")
