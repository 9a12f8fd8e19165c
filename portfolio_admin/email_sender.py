# -*- coding: utf-8 -*-
import logging
import smtplib
from email.mime.text import MIMEText

from .exceptions import ConfigError, DeliveryFailed

logger = logging.getLogger(__name__)


class EmailSender:
    def __init__(self, config=None):
        self.config = dict(config or {})
        if self.enabled and not (self.config.get('SMTP_HOST') and self.config.get('SMTP_FROM')):
            raise ConfigError("SMTP_HOST and SMTP_FROM are required when SMTP_ENABLED is set")

    @property
    def enabled(self):
        return bool(self.config.get('SMTP_ENABLED'))

    def send_verification_code(self, email, code):
        """Send the admin login code"""
        minutes = max(1, self.config.get('CODE_TTL_SECONDS', 300) // 60)
        body = (f"Your admin panel verification code is {code}.\n"
                f"It expires in {minutes} minutes and can only be used once.")
        if not self.enabled:
            logger.info(f"Code for {email}: {code}")
            return True
        self._send(email, self.config.get('CODE_SUBJECT', 'Verification code'), body)
        logger.info(f"Verification code sent to {email}")
        return True

    def send_password_reset(self, email, link):
        """Send a password reset link"""
        body = ("A password reset was requested for your admin account.\n"
                f"Open this link to choose a new password: {link}\n"
                "If you did not ask for this, ignore this email.")
        if not self.enabled:
            logger.info(f"Password reset link for {email}: {link}")
            return True
        self._send(email, self.config.get('RESET_SUBJECT', 'Password reset'), body)
        logger.info(f"Password reset link sent to {email}")
        return True

    def _send(self, recipient, subject, body):
        msg = MIMEText(body, 'plain', 'utf-8')
        msg['Subject'] = subject
        msg['From'] = self.config.get('SMTP_FROM')
        msg['To'] = recipient
        try:
            with smtplib.SMTP(self.config.get('SMTP_HOST'), self.config.get('SMTP_PORT'), timeout=10) as server:
                if self.config.get('SMTP_USE_TLS'):
                    server.starttls()
                if self.config.get('SMTP_USERNAME'):
                    server.login(self.config['SMTP_USERNAME'], self.config.get('SMTP_PASSWORD', ''))
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email to {recipient} failed: {e}")
            raise DeliveryFailed() from e
