from __future__ import annotations

from campaign_dispatcher.schemas.events import PUBLISH_FIELDS, ChangeEvent

PUBLISH_TRANSITION = "publish_transition"
NOT_PUBLISHED = "not_published"
PUBLISH_FIELD_NOT_IN_PAYLOAD = "publish_field_not_in_payload"


def classify_transition(event: ChangeEvent) -> str:
    """Explain whether the event publishes (or re-publishes) its entry.

    Created and updated events follow the same rule: the resulting entry must be
    published and the request that produced it must have carried the publish
    field. An entry that was already published and had an unrelated field edited
    is not a transition.
    """
    if not event.entry.is_published:
        return NOT_PUBLISHED
    if PUBLISH_FIELDS.isdisjoint(event.request_payload_keys):
        return PUBLISH_FIELD_NOT_IN_PAYLOAD
    return PUBLISH_TRANSITION


def is_publish_transition(event: ChangeEvent) -> bool:
    return classify_transition(event) == PUBLISH_TRANSITION
