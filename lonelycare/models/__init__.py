"""SQLAlchemy models."""

from __future__ import annotations

from lonelycare.models.admin_setting import AdminSetting
from lonelycare.models.friendship import Friendship
from lonelycare.models.heartbeat import Heartbeat
from lonelycare.models.user import User
from lonelycare.models.user_profile import UserProfile

__all__ = [
    "AdminSetting",
    "Friendship",
    "Heartbeat",
    "User",
    "UserProfile",
]
