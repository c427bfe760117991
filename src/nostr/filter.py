"""
Filter — фильтр подписки relay

Поля: ids, authors, kinds, теги из одной буквы (#d, #n, ...), since, until, limit.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .event import Event


class Filter(BaseModel):
    """Фильтр событий для REQ"""

    ids: Optional[List[str]] = None
    authors: Optional[List[str]] = None
    kinds: Optional[List[int]] = None
    tags: Dict[str, List[str]] = Field(default_factory=dict, description="Фильтры по тегам")
    since: Optional[int] = Field(None, ge=0)
    until: Optional[int] = Field(None, ge=0)
    limit: Optional[int] = Field(None, ge=0)

    model_config = {"frozen": True}

    @field_validator("tags")
    @classmethod
    def validate_tag_names(cls, v: Dict[str, List[str]]) -> Dict[str, List[str]]:
        """Relay индексирует только теги из одной буквы"""
        for name in v:
            if len(name) != 1 or not name.isalpha():
                raise ValueError(f"tag filter name must be a single letter, got {name!r}")
        return v

    def with_tag(self, name: str, *values: str) -> "Filter":
        tags = dict(self.tags)
        tags[name] = list(values)
        return self.model_copy(update={"tags": tags})

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {}
        for key in ("ids", "authors", "kinds", "since", "until", "limit"):
            value = getattr(self, key)
            if value is not None:
                wire[key] = value
        for name, values in self.tags.items():
            wire[f"#{name}"] = list(values)
        return wire

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "Filter":
        fields: Dict[str, Any] = {}
        tags: Dict[str, List[str]] = {}
        for key, value in data.items():
            if key.startswith("#"):
                tags[key[1:]] = value
            else:
                fields[key] = value
        return cls(tags=tags, **fields)

    def matches(self, event: Event) -> bool:
        """Локальная проверка соответствия события фильтру"""
        if self.ids is not None and event.id not in self.ids:
            return False
        if self.authors is not None and event.pubkey not in self.authors:
            return False
        if self.kinds is not None and event.kind not in self.kinds:
            return False
        if self.since is not None and event.created_at < self.since:
            return False
        if self.until is not None and event.created_at > self.until:
            return False
        for name, values in self.tags.items():
            if not set(values) & set(event.tag_values(name)):
                return False
        return True
