# auth.py - two-step admin login (password, then emailed code)
import enum
import functools
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from flask import current_app, flash, redirect, request, session, url_for
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import (CodeGenerationFailed, DeliveryFailed, Expired,
                         InvalidOrUsedCode, NotAuthorized, ServiceUnavailable)
from .identity import IdentityProvider, Principal
from .models import utcnow
from .repositories import AdminRepository, CodeRepository
from .session_state import ElevatedSessionMarker, MarkerStore

logger = logging.getLogger(__name__)

PENDING_KEY = 'pending_admin_uid'
CODE_LENGTH = 6


class AuthState(enum.Enum):
    UNAUTHENTICATED = 'unauthenticated'
    AUTHENTICATED_NON_ADMIN = 'authenticated_non_admin'
    AUTHENTICATED_ADMIN = 'authenticated_admin'


@dataclass(frozen=True)
class LoginChallenge:
    principal: Principal
    delivered: bool


class AuthSystem:
    def __init__(self, identity=None, admins=None, codes=None, markers=None, clock=None):
        self.clock = clock or utcnow
        self.identity = identity or IdentityProvider(clock=lambda: self.clock())
        self.admins = admins or AdminRepository()
        self.codes = codes or CodeRepository()
        self.markers = markers or MarkerStore()

    @staticmethod
    def generate_code(length=CODE_LENGTH):
        return str(secrets.randbelow(10 ** length)).zfill(length)

    # -------------------
    # Step 1
    # -------------------
    def _has_admin_role(self, email):
        try:
            return self.admins.is_admin(email)
        except SQLAlchemyError as e:
            logger.error(f"Admin role check failed for {email}: {e}")
            return False

    def login(self, identifier, secret) -> Principal:
        """Check the primary credential and the admin role"""
        # A new credential check never inherits an earlier elevation
        self.markers.clear()
        session.pop(PENDING_KEY, None)
        principal = self.identity.sign_in(identifier, secret)
        if not self._has_admin_role(principal.email):
            self.identity.sign_out()
            logger.warning(f"Non-admin sign-in refused for {principal.email}")
            raise NotAuthorized()
        return principal

    def issue_code(self, principal_id) -> Optional[str]:
        code = self.generate_code()
        now = self.clock()
        expires_at = now + timedelta(seconds=current_app.config['CODE_TTL_SECONDS'])
        try:
            self.codes.add(principal_id, code, created_at=now, expires_at=expires_at)
        except SQLAlchemyError as e:
            logger.error(f"Error saving verification code for {principal_id}: {e}")
            return None
        logger.info(f"Generated admin code for {principal_id}")
        return code

    def initiate_admin_login(self, identifier, secret, sender) -> LoginChallenge:
        """
        Run step 1 end to end: credentials, code issuance and delivery.

        A delivery failure leaves the issued code in place and is reported
        through ``LoginChallenge.delivered`` rather than raised.
        """
        principal = self.login(identifier, secret)
        code = self.issue_code(principal.uid)
        if not code:
            self.identity.sign_out()
            raise CodeGenerationFailed()
        session[PENDING_KEY] = principal.uid
        try:
            sender.send_verification_code(principal.email, code)
            delivered = True
        except DeliveryFailed:
            delivered = False
        return LoginChallenge(principal=principal, delivered=delivered)

    # -------------------
    # Step 2
    # -------------------
    def verify_code(self, principal_id, submitted_code) -> bool:
        code = (submitted_code or '').strip()
        try:
            matches = self.codes.find_unused(principal_id, code) if code else []
            if not matches:
                logger.info(f"Invalid or used code submitted for {principal_id}")
                raise InvalidOrUsedCode()

            record = matches[0]
            now = self.clock()
            if record.is_expired(now):
                self.codes.mark_used(record.id)
                logger.info(f"Expired code {record.id} burned for {principal_id}")
                raise Expired()

            consumed = self.codes.mark_used(record.id, used_at=now)
        except SQLAlchemyError as e:
            logger.error(f"Error verifying code for {principal_id}: {e}")
            raise ServiceUnavailable() from e
        if not consumed:
            raise InvalidOrUsedCode()

        self.markers.save(ElevatedSessionMarker(is_admin=True, last_login_at=now,
                                                principal_uid=principal_id))
        session.pop(PENDING_KEY, None)
        logger.info(f"Admin session elevated for {principal_id}")
        return True

    # -------------------
    # Session
    # -------------------
    def current_principal(self) -> Optional[Principal]:
        """Live principal with a fresh elevated marker, logging out otherwise"""
        principal = self.identity.current_principal()
        if principal is None:
            self.markers.clear()
            return None
        marker = self.markers.load()
        timeout = timedelta(seconds=current_app.config['SESSION_TIMEOUT'])
        if (marker is None or not marker.is_admin or not marker.belongs_to(principal.uid)
                or marker.is_stale(self.clock(), timeout)):
            logger.info(f"Session marker missing or expired for {principal.email}")
            self.logout()
            return None
        return principal

    def resolve_session(self) -> AuthState:
        principal = self.current_principal()
        if principal is None:
            return AuthState.UNAUTHENTICATED
        # The marker is client-held, the role comes from the database
        if not self._has_admin_role(principal.email):
            return AuthState.AUTHENTICATED_NON_ADMIN
        return AuthState.AUTHENTICATED_ADMIN

    def logout(self):
        self.identity.sign_out()
        self.markers.clear()
        session.pop(PENDING_KEY, None)


def get_auth_system() -> AuthSystem:
    return current_app.extensions['auth_system']


def admin_required(view):
    """Redirect anything short of a verified admin to the login page"""
    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        try:
            state = get_auth_system().resolve_session()
        except ServiceUnavailable as e:
            flash(str(e), 'error')
            state = AuthState.UNAUTHENTICATED
        if state is not AuthState.AUTHENTICATED_ADMIN:
            if state is AuthState.AUTHENTICATED_NON_ADMIN:
                flash(NotAuthorized.message, 'error')
            return redirect(url_for('admin.login', next=request.full_path.rstrip('?')))
        return view(*args, **kwargs)
    return wrapper
