"""
Event — Подписанный конверт сообщения relay-сети

id = sha256(json([0, pubkey, created_at, kind, tags, content])) в hex,
sig — подпись Ed25519 над сырыми 32 байтами id.

EventDraft — неподписанное событие: собирается кодеком ордера, затем (при
необходимости) проходит поиск proof-of-work и подписывается ключами пула.
"""

import hashlib
import json
import time
from typing import Any, Dict, List, Optional

from jsonschema import ValidationError as SchemaValidationError
from pydantic import BaseModel, Field

from src.core.contracts import validate_event
from src.core.errors import EventVerificationError

from .keys import Keys


def serialize_for_id(
    pubkey: str, created_at: int, kind: int, tags: List[List[str]], content: str
) -> bytes:
    """Каноническая сериализация для вычисления id"""
    return json.dumps(
        [0, pubkey, created_at, kind, tags, content],
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def compute_event_id(
    pubkey: str, created_at: int, kind: int, tags: List[List[str]], content: str
) -> str:
    return hashlib.sha256(serialize_for_id(pubkey, created_at, kind, tags, content)).hexdigest()


def count_leading_zero_bits(hex_id: str) -> int:
    """Количество ведущих нулевых бит в hex-строке id"""
    bits = 0
    for char in hex_id:
        nibble = int(char, 16)
        if nibble == 0:
            bits += 4
            continue
        bits += 4 - nibble.bit_length()
        break
    return bits


# =============================================================================
# DRAFT
# =============================================================================


class EventDraft(BaseModel):
    """Неподписанное событие"""

    kind: int = Field(..., ge=0, le=65535, description="Вид события")
    tags: List[List[str]] = Field(default_factory=list, description="Теги события")
    content: str = Field("", description="Содержимое события")
    created_at: int = Field(default_factory=lambda: int(time.time()), ge=0)

    model_config = {"frozen": True}

    def with_tag(self, *values: str) -> "EventDraft":
        """Новый draft с добавленным тегом; существующий тег с тем же именем заменяется"""
        tags = [t for t in self.tags if not t or t[0] != values[0]]
        tags.append(list(values))
        return self.model_copy(update={"tags": tags})

    def compute_id(self, pubkey: str) -> str:
        return compute_event_id(pubkey, self.created_at, self.kind, self.tags, self.content)

    def sign(self, keys: Keys) -> "Event":
        event_id = self.compute_id(keys.public_key)
        sig = keys.sign(bytes.fromhex(event_id)).hex()
        return Event(
            id=event_id,
            pubkey=keys.public_key,
            created_at=self.created_at,
            kind=self.kind,
            tags=[list(t) for t in self.tags],
            content=self.content,
            sig=sig,
        )


# =============================================================================
# EVENT
# =============================================================================


class Event(BaseModel):
    """Подписанное событие, как оно передаётся по проводу"""

    id: str = Field(..., min_length=64, max_length=64)
    pubkey: str = Field(..., min_length=64, max_length=64)
    created_at: int = Field(..., ge=0)
    kind: int = Field(..., ge=0, le=65535)
    tags: List[List[str]] = Field(default_factory=list)
    content: str = ""
    sig: str = Field(..., min_length=128, max_length=128)

    model_config = {"frozen": True}

    @classmethod
    def from_wire(cls, data: Any) -> "Event":
        """
        Разбор события из JSON-объекта провода.

        Raises:
            EventVerificationError: Если конверт не соответствует контракту event.json
        """
        try:
            validate_event(data)
        except SchemaValidationError as e:
            raise EventVerificationError(f"malformed event: {e.message}") from e
        return cls.model_validate(data)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @property
    def difficulty(self) -> int:
        """Фактическая сложность PoW: ведущие нулевые биты id"""
        return count_leading_zero_bits(self.id)

    def tag_value(self, name: str) -> Optional[str]:
        """Первое значение тега name, если он есть"""
        for tag in self.tags:
            if len(tag) >= 2 and tag[0] == name:
                return tag[1]
        return None

    def tag_values(self, name: str) -> List[str]:
        return [tag[1] for tag in self.tags if len(tag) >= 2 and tag[0] == name]

    def verify(self) -> None:
        """
        Проверка id и подписи.

        Raises:
            EventVerificationError: Если id не совпадает с содержимым или подпись неверна
        """
        expected = compute_event_id(self.pubkey, self.created_at, self.kind, self.tags, self.content)
        if expected != self.id:
            raise EventVerificationError(f"event id mismatch: {self.id} != {expected}")
        try:
            sig = bytes.fromhex(self.sig)
        except ValueError:
            raise EventVerificationError(f"event {self.id} signature is not hex") from None
        if not Keys.verify(self.pubkey, sig, bytes.fromhex(self.id)):
            raise EventVerificationError(f"event {self.id} has an invalid signature")

    def is_valid(self) -> bool:
        try:
            self.verify()
        except EventVerificationError:
            return False
        return True
