"""Data models for persistent entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional


def _format_timestamp(value: Any) -> Optional[str]:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


@dataclass
class User:
    id: int
    username: str
    password: str
    profile_pic: str = ""
    usb_key: Optional[str] = None

    @property
    def requires_usb(self) -> bool:
        return bool(self.usb_key)

    def to_dict(self) -> dict:
        # The password is part of the login payload the web client expects.
        return {
            "id": self.id,
            "username": self.username,
            "password": self.password,
            "profile_pic": self.profile_pic,
            "usb_key": self.usb_key,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return cls(
            id=row["id"],
            username=row["username"],
            password=row["password"],
            profile_pic=row.get("profile_pic") or "",
            usb_key=row.get("usb_key"),
        )


@dataclass
class Message:
    id: int
    sender: str
    message: str
    timestamp: Optional[str]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sender": self.sender,
            "message": self.message,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Message":
        return cls(
            id=row["id"],
            sender=row["sender"],
            message=row["message"],
            timestamp=_format_timestamp(row.get("timestamp")),
        )
