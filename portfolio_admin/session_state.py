"""Elevated-session marker kept in the browser-held session cookie"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import session

logger = logging.getLogger(__name__)

IS_ADMIN_KEY = 'is_admin'
LAST_LOGIN_KEY = 'admin_last_login'
UID_KEY = 'admin_uid'


@dataclass(frozen=True)
class ElevatedSessionMarker:
    is_admin: bool
    last_login_at: datetime
    principal_uid: str

    def belongs_to(self, uid: str) -> bool:
        return bool(uid) and self.principal_uid == uid

    def is_stale(self, now: datetime, timeout: timedelta) -> bool:
        return now - self.last_login_at > timeout


class MarkerStore:
    """
    The only reader and writer of the marker keys.

    All keys are always written and cleared together. A value that cannot
    be parsed reads back as no marker at all.
    """

    def __init__(self, storage=None):
        self._storage = storage

    @property
    def storage(self):
        return session if self._storage is None else self._storage

    def load(self) -> Optional[ElevatedSessionMarker]:
        raw_flag = self.storage.get(IS_ADMIN_KEY)
        raw_login = self.storage.get(LAST_LOGIN_KEY)
        raw_uid = self.storage.get(UID_KEY)
        if raw_flag is None or not raw_login or not raw_uid:
            return None
        try:
            last_login_at = datetime.fromisoformat(raw_login)
        except (TypeError, ValueError):
            logger.warning(f"Discarding unreadable {LAST_LOGIN_KEY} value")
            return None
        return ElevatedSessionMarker(is_admin=raw_flag is True, last_login_at=last_login_at,
                                     principal_uid=raw_uid)

    def save(self, marker: ElevatedSessionMarker):
        self.storage[IS_ADMIN_KEY] = marker.is_admin
        self.storage[LAST_LOGIN_KEY] = marker.last_login_at.isoformat()
        self.storage[UID_KEY] = marker.principal_uid

    def clear(self):
        self.storage.pop(IS_ADMIN_KEY, None)
        self.storage.pop(LAST_LOGIN_KEY, None)
        self.storage.pop(UID_KEY, None)
