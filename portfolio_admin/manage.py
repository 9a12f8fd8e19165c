#!/usr/bin/env python3
"""
Management script for the portfolio admin panel
"""

import sys
import logging

from sqlalchemy.exc import SQLAlchemyError

from . import create_app
from .repositories import AdminRepository, CodeRepository
from .models import db, utcnow

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

USAGE = """Available commands:
  init_db                          - create database tables
  create_admin <email> <password>  - create an admin account
  purge_codes                      - delete used and expired verification codes
  runserver                        - start the development server"""


def init_database(app):
    logger.info("🔄 Initialising database...")
    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as e:
            logger.error(f"❌ Database initialisation failed: {e}")
            return False
    logger.info("✅ Database initialised")
    return True


def create_admin(app, email, password):
    """Create the account and its admin record"""
    with app.app_context():
        auth_system = app.extensions['auth_system']
        try:
            principal = auth_system.identity.create_account(email, password)
            AdminRepository().add_admin(principal.email)
        except SQLAlchemyError as e:
            logger.error(f"❌ Could not create admin {email}: {e}")
            return False
    logger.info(f"✅ Admin {principal.email} ready")
    return True


def purge_codes(app):
    with app.app_context():
        try:
            deleted = CodeRepository().purge(utcnow())
        except SQLAlchemyError as e:
            logger.error(f"❌ Could not purge verification codes: {e}")
            return False
    logger.info(f"✅ Removed {deleted} verification codes")
    return True


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    command = argv[0] if argv else "runserver"
    app = create_app()

    if command == "init_db":
        return 0 if init_database(app) else 1

    if command == "create_admin":
        if len(argv) != 3:
            logger.error("❌ Usage: create_admin <email> <password>")
            return 1
        return 0 if create_admin(app, argv[1], argv[2]) else 1

    if command == "purge_codes":
        return 0 if purge_codes(app) else 1

    if command == "runserver":
        logger.info("🚀 Starting server...")
        app.run(host="0.0.0.0", port=8080, debug=False)
        return 0

    logger.error(f"❌ Unknown command: {command}")
    print(USAGE)
    return 1


if __name__ == "__main__":
    sys.exit(main())
