"""Identity-provider event -> users row."""

from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from idsync.modules.sync.schemas import AccountCreatedEvent

E = TypeVar("E", bound=BaseModel)


def parse_event(model: Type[E], event: Union[E, Mapping[str, Any]]) -> E:
    """Validate a raw payload into `model`. Raises pydantic.ValidationError."""
    if isinstance(event, model):
        return event
    return model.model_validate(event)


def raw_uid(event: Any) -> Optional[str]:
    """Best-effort uid for logging a payload that failed validation."""
    if isinstance(event, BaseModel):
        uid = getattr(event, "uid", None)
    elif isinstance(event, Mapping):
        uid = event.get("uid")
    else:
        uid = None
    return uid if isinstance(uid, str) else None


def describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg')}")
    return "Malformed event payload: " + "; ".join(parts)


def to_row(event: AccountCreatedEvent) -> Dict[str, Any]:
    """
    Every column is written on every sync; absent optional fields become their
    defaults rather than being left out. created_at and updated_at are left to
    the store (column default on insert, trigger on update).
    """
    return {
        "external_uid": event.uid,
        "email": event.email if event.email is not None else "",
        "display_name": event.display_name,
        "avatar_url": event.photo_url,
    }
