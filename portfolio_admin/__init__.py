import logging

from flask import Flask

from .auth import AuthSystem
from .config import Config
from .database import setup_database
from .email_sender import EmailSender
from .models import db

__version__ = "1.0.0"


def create_app(overrides=None):
    """Application factory"""
    app = Flask(__name__, template_folder='templates')
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=app.config.get('LOG_LEVEL', 'INFO'))

    setup_database(app)
    app.extensions['auth_system'] = AuthSystem()
    app.extensions['email_sender'] = EmailSender(app.config)

    from .routes import admin, site
    app.register_blueprint(site)
    app.register_blueprint(admin)
    return app
