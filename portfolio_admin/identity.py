"""
Identity provider: primary credential check and the live signed-in principal.

Accounts live in the ``accounts`` table with werkzeug password hashes. The
live principal is the ``uid`` stored in the signed Flask session cookie.
Failed sign-ins are throttled per identifier.
"""

import functools
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from flask import current_app, session
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import (InvalidCredentials, InvalidResetToken, ServiceUnavailable,
                         TooManyAttempts)
from .models import db, utcnow, Account, LoginAttempt

logger = logging.getLogger(__name__)

UID_KEY = 'uid'
RESET_SALT = 'password-reset'


@dataclass(frozen=True)
class Principal:
    uid: str
    email: str


def _normalize(identifier):
    return (identifier or '').strip().lower()


def _store_errors(method):
    """Roll back and report database failures as ServiceUnavailable"""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"{method.__name__} failed: {e}")
            raise ServiceUnavailable() from e
    return wrapper


class IdentityProvider:
    def __init__(self, clock=None):
        self.clock = clock or utcnow

    # -------------------
    # Accounts
    # -------------------
    @staticmethod
    def _find_account(**criteria):
        return Account.query.filter_by(**criteria).first()

    def create_account(self, email, password) -> Principal:
        email = _normalize(email)
        account = self._find_account(email=email)
        if account is None:
            account = Account(uid=secrets.token_hex(16), email=email)
            db.session.add(account)
        account.set_password(password)
        db.session.commit()
        logger.info(f"Account ready for {email}")
        return Principal(uid=account.uid, email=account.email)

    # -------------------
    # Sign in / out
    # -------------------
    @_store_errors
    def sign_in(self, email, password) -> Principal:
        identifier = _normalize(email)
        self._check_throttle(identifier)

        account = self._find_account(email=identifier) if identifier else None
        if account is None or not password or not account.check_password(password):
            self._record_failure(identifier)
            logger.info(f"Rejected sign-in for {identifier or '<empty>'}")
            raise InvalidCredentials()

        LoginAttempt.query.filter_by(identifier=identifier).delete(synchronize_session=False)
        db.session.commit()
        session[UID_KEY] = account.uid
        return Principal(uid=account.uid, email=account.email)

    def sign_out(self):
        session.pop(UID_KEY, None)

    @_store_errors
    def current_principal(self) -> Optional[Principal]:
        uid = session.get(UID_KEY)
        if not uid:
            return None
        account = self._find_account(uid=uid)
        if account is None:
            session.pop(UID_KEY, None)
            return None
        return Principal(uid=account.uid, email=account.email)

    def _window(self):
        return timedelta(seconds=current_app.config['LOGIN_ATTEMPT_WINDOW'])

    def _check_throttle(self, identifier):
        if not identifier:
            return
        since = self.clock() - self._window()
        recent = (LoginAttempt.query
                  .filter(LoginAttempt.identifier == identifier,
                          LoginAttempt.attempted_at >= since)
                  .order_by(LoginAttempt.attempted_at.asc())
                  .all())
        if len(recent) >= current_app.config['MAX_LOGIN_ATTEMPTS']:
            oldest = recent[0].attempted_at
            retry_after = int((oldest + self._window() - self.clock()).total_seconds()) + 1
            logger.warning(f"Throttling sign-in for {identifier}")
            raise TooManyAttempts(retry_after=max(retry_after, 1))

    def _record_failure(self, identifier):
        if not identifier:
            return
        try:
            db.session.add(LoginAttempt(identifier=identifier, attempted_at=self.clock()))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Could not record failed sign-in: {e}")

    # -------------------
    # Password reset
    # -------------------
    def _serializer(self):
        return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=RESET_SALT)

    @staticmethod
    def _fingerprint(account):
        # Changes whenever the password does, so a token only works once
        return account.password_hash[-16:]

    @_store_errors
    def make_reset_token(self, email) -> Optional[str]:
        account = self._find_account(email=_normalize(email))
        if account is None:
            return None
        return self._serializer().dumps({'uid': account.uid, 'fp': self._fingerprint(account)})

    @_store_errors
    def reset_password(self, token, new_password) -> Principal:
        try:
            data = self._serializer().loads(token, max_age=current_app.config['RESET_TOKEN_MAX_AGE'])
        except (SignatureExpired, BadSignature):
            raise InvalidResetToken()
        account = self._find_account(uid=data.get('uid'))
        if account is None or data.get('fp') != self._fingerprint(account):
            raise InvalidResetToken()
        account.set_password(new_password)
        LoginAttempt.query.filter_by(identifier=account.email).delete(synchronize_session=False)
        db.session.commit()
        logger.info(f"Password reset for {account.email}")
        return Principal(uid=account.uid, email=account.email)
