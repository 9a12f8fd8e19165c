"""
Typed access to the records the login gate keeps in the database.

Rows are converted to frozen dataclasses at this boundary so the rest of
the package never handles loosely-populated ORM objects.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import RecordValidationError
from .models import db, Admin, VerificationCode

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'admin'


@dataclass(frozen=True)
class AdministratorRecord:
    email: str
    role: str


@dataclass(frozen=True)
class OneTimeCode:
    id: int
    owner_principal_id: str
    code: str
    created_at: datetime
    expires_at: datetime
    used: bool
    used_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


def _require(row, *fields):
    missing = [f for f in fields if getattr(row, f, None) is None]
    if missing:
        raise RecordValidationError(
            f"{type(row).__name__} {getattr(row, 'id', '?')} is missing {', '.join(missing)}"
        )


class AdminRepository:
    """Read side of the administrator records"""

    def find_admin(self, email: Optional[str]) -> Optional[AdministratorRecord]:
        if not email:
            return None
        row = Admin.query.filter_by(email=email, role=ADMIN_ROLE).first()
        if row is None:
            return None
        _require(row, 'email', 'role')
        return AdministratorRecord(email=row.email, role=row.role)

    def is_admin(self, email: Optional[str]) -> bool:
        return self.find_admin(email) is not None

    def add_admin(self, email: str) -> AdministratorRecord:
        """Provision an admin record, used by the management script only"""
        existing = self.find_admin(email)
        if existing:
            return existing
        db.session.add(Admin(email=email, role=ADMIN_ROLE))
        db.session.commit()
        logger.info(f"Admin record created for {email}")
        return AdministratorRecord(email=email, role=ADMIN_ROLE)


class CodeRepository:
    """Persistence of one-time verification codes"""

    @staticmethod
    def _to_record(row) -> OneTimeCode:
        _require(row, 'id', 'owner_principal_id', 'code', 'created_at', 'expires_at', 'used')
        if not row.code.isdigit():
            raise RecordValidationError(f"Verification code {row.id} is not numeric")
        return OneTimeCode(
            id=row.id,
            owner_principal_id=row.owner_principal_id,
            code=row.code,
            created_at=row.created_at,
            expires_at=row.expires_at,
            used=bool(row.used),
            used_at=row.used_at,
        )

    def add(self, owner_principal_id: str, code: str, created_at: datetime,
            expires_at: datetime) -> OneTimeCode:
        row = VerificationCode(
            owner_principal_id=owner_principal_id,
            code=code,
            created_at=created_at,
            expires_at=expires_at,
            used=False,
        )
        try:
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return self._to_record(row)

    def find_unused(self, owner_principal_id: str, code: str) -> List[OneTimeCode]:
        """Unused codes matching owner and value, most recently issued first"""
        try:
            rows = (VerificationCode.query
                    .filter_by(owner_principal_id=owner_principal_id, code=code, used=False)
                    .order_by(VerificationCode.created_at.desc(), VerificationCode.id.desc())
                    .all())
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return [self._to_record(row) for row in rows]

    def mark_used(self, code_id: int, used_at: Optional[datetime] = None) -> bool:
        """
        Flip ``used`` only if it is still false.

        Returns False when another request consumed the code first.
        """
        values = {'used': True}
        if used_at is not None:
            values['used_at'] = used_at
        try:
            updated = (VerificationCode.query
                       .filter_by(id=code_id, used=False)
                       .update(values, synchronize_session=False))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return updated == 1

    def purge(self, now: datetime) -> int:
        """Delete codes that can never verify again"""
        try:
            deleted = (VerificationCode.query
                       .filter(sa.or_(VerificationCode.used == sa.true(),
                                      VerificationCode.expires_at < now))
                       .delete(synchronize_session=False))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return deleted
