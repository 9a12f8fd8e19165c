# database.py - database setup for the Flask application
import logging

from .models import db

logger = logging.getLogger(__name__)


def setup_database(app):
    """Bind the SQLAlchemy extension and create missing tables"""
    db.init_app(app)
    with app.app_context():
        db.create_all()
    logger.info(f"Database ready at {db_label(app.config['SQLALCHEMY_DATABASE_URI'])}")
    return db


def db_label(url):
    """Database URL with the password masked, for logs"""
    if '@' not in url or '://' not in url:
        return url
    scheme, rest = url.split('://', 1)
    creds, host = rest.rsplit('@', 1)
    user = creds.split(':', 1)[0]
    return f"{scheme}://{user}:***@{host}"
