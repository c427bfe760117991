"""
Keys — Криптографическая идентичность участника

Пара ключей Ed25519 (библиотека cryptography). Публичный ключ в hex служит
адресом участника и полем pubkey каждого события. Приватный ключ никогда не
попадает в repr, логи или сериализованные модели.
"""

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)


class Keys:
    """Пара ключей Ed25519"""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self._public_hex = self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        ).hex()

    # =========================================================================
    # CONSTRUCTORS
    # =========================================================================

    @classmethod
    def generate(cls) -> "Keys":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, data: bytes) -> "Keys":
        """Импорт из 32 сырых байт приватного ключа"""
        if len(data) != 32:
            raise ValueError(f"Ed25519 private key must be 32 bytes, got {len(data)}")
        return cls(Ed25519PrivateKey.from_private_bytes(data))

    @classmethod
    def from_hex(cls, private_hex: str) -> "Keys":
        return cls.from_private_bytes(bytes.fromhex(private_hex))

    @classmethod
    def from_pem(cls, pem: bytes) -> "Keys":
        """Импорт из PKCS8 PEM без шифрования"""
        private_key = serialization.load_pem_private_key(pem, password=None)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError("PEM does not contain an Ed25519 private key")
        return cls(private_key)

    # =========================================================================
    # EXPORT
    # =========================================================================

    @property
    def public_key(self) -> str:
        """Публичный ключ (32 байта, hex)"""
        return self._public_hex

    def private_bytes(self) -> bytes:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def private_hex(self) -> str:
        return self.private_bytes().hex()

    def to_pem(self) -> bytes:
        """Экспорт приватного ключа в PKCS8 PEM"""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    # =========================================================================
    # SIGNATURES
    # =========================================================================

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    @staticmethod
    def verify(public_key_hex: str, signature: bytes, message: bytes) -> bool:
        """Проверка подписи по hex публичного ключа"""
        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
            public_key.verify(signature, message)
        except (InvalidSignature, ValueError):
            return False
        return True

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Keys):
            return NotImplemented
        return self.private_bytes() == other.private_bytes()

    def __hash__(self) -> int:
        return hash(self._public_hex)

    def __repr__(self) -> str:
        return f"Keys(public_key={self._public_hex!r})"
