from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from campaign_dispatcher.schemas.entries import ContentEntry

PUBLISH_FIELDS = frozenset({"publishedAt", "published_at"})

ACTION_ALIASES = {
    "created": "created",
    "create": "created",
    "aftercreate": "created",
    "entry.create": "created",
    "updated": "updated",
    "update": "updated",
    "afterupdate": "updated",
    "entry.update": "updated",
    "entry.publish": "updated",
}
IMPLIED_PUBLISH_ACTIONS = {"entry.publish"}


class ChangeAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(slots=True, frozen=True)
class ChangeEvent:
    action: ChangeAction
    entry: ContentEntry
    request_payload_keys: frozenset[str] = field(default_factory=frozenset)


class ChangeEventIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str = Field(validation_alias=AliasChoices("action", "event"))
    entry: dict[str, Any]
    request_payload_keys: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("requestPayloadKeys", "request_payload_keys"),
    )
    model: str | None = None

    @field_validator("action")
    @classmethod
    def _known_action(cls, value: str) -> str:
        lowered = value.strip().lower()
        if lowered not in ACTION_ALIASES:
            raise ValueError(f"unsupported action: {value}")
        return lowered

    def to_event(self, *, category_relation: str, notified_field: str) -> ChangeEvent:
        keys = {key for key in self.request_payload_keys if key}
        if self.action in IMPLIED_PUBLISH_ACTIONS:
            keys.add("publishedAt")
        return ChangeEvent(
            action=ChangeAction(ACTION_ALIASES[self.action]),
            entry=ContentEntry.from_strapi(
                self.entry,
                category_relation=category_relation,
                notified_field=notified_field,
            ),
            request_payload_keys=frozenset(keys),
        )


class EventAccepted(BaseModel):
    accepted: bool
    action: ChangeAction | None = None
    document_id: str | None = None
    reason: str | None = None


class SendMailOut(BaseModel):
    success: bool
    outcome: str
    campaign_id: str | None = None
    title: str
    reason: str | None = None
