"""Storage notification models for uploaded objects."""

from typing import List, Optional

from pydantic import BaseModel


class StorageObjectEvent(BaseModel):
    """One object-level storage notification."""

    event_name: str = "ObjectCreated:Put"
    bucket: Optional[str] = None
    key: str
    size: Optional[int] = None
    content_type: Optional[str] = None

    @property
    def is_created(self) -> bool:
        """Whether the event reports a newly written object."""
        return self.event_name.startswith("ObjectCreated")

    @classmethod
    def from_payload(cls, payload: dict) -> List["StorageObjectEvent"]:
        """
        Parse a notification payload into object events.

        Supports S3-style ``{"Records": [...]}`` notifications as well as a bare
        ``{"key": ..., "content_type": ...}`` payload.

        Args:
            payload: Raw event payload.

        Returns:
            List of parsed events, empty if the payload carries none.
        """
        if "Records" in payload:
            events = []
            for record in payload.get("Records") or []:
                s3 = record.get("s3") or {}
                obj = s3.get("object") or {}
                if not obj.get("key"):
                    continue
                events.append(
                    cls(
                        event_name=record.get("eventName", "ObjectCreated:Put"),
                        bucket=(s3.get("bucket") or {}).get("name"),
                        key=obj["key"],
                        size=obj.get("size"),
                    )
                )
            return events

        if payload.get("key"):
            return [
                cls(
                    event_name=payload.get("event_name", "ObjectCreated:Put"),
                    bucket=payload.get("bucket"),
                    key=payload["key"],
                    size=payload.get("size"),
                    content_type=payload.get("content_type"),
                )
            ]

        return []
