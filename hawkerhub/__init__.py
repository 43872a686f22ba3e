"""Initialize the Flask app and its extensions."""

import json
import os

import firebase_admin
from firebase_admin import credentials, firestore
from flask import Flask, current_app, g, session
from werkzeug.middleware.proxy_fix import ProxyFix

from .extensions import csrf, mail


def _env(name, default=None):
    """Read an environment variable, treating empty values as unset."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().strip("\"'")


def _env_flag(name, default):
    return (_env(name) or default).lower() in ["true", "1", "t"]


def _init_firebase(app):
    """Initialize the Firebase Admin SDK from env, file, or default credentials."""
    cred = None
    project_id = None

    # First, try to load from environment variable (for production)
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        try:
            cred_info = json.loads(cred_json)
            project_id = cred_info.get("project_id")
            cred = credentials.Certificate(cred_info)
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    # If env var fails or is not present, try loading from file (for local dev)
    if not cred:
        cred_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
        )
        if os.path.exists(cred_path):
            try:
                with open(cred_path, "r") as f:
                    project_id = json.load(f).get("project_id")
                cred = credentials.Certificate(cred_path)
            except (json.JSONDecodeError, ValueError) as e:
                app.logger.error(f"Error loading credentials from file: {e}")

    if not cred:
        try:
            cred = credentials.ApplicationDefault()
            project_id = os.environ.get("FIREBASE_PROJECT_ID")
        except Exception as e:
            app.logger.error(
                f"Could not find any valid credentials (env, file, or default): {e}"
            )

    if cred and not firebase_admin._apps:
        try:
            options = {"projectId": project_id} if project_id else None
            firebase_admin.initialize_app(cred, options)
        except ValueError:
            # Raised when the default app already exists.
            app.logger.info("Firebase app already initialized.")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    mail_password = _env("MAIL_PASSWORD")
    app.config.from_mapping(
        SECRET_KEY=_env("SECRET_KEY", "dev"),
        ENVIRONMENT=_env("ENVIRONMENT", "development"),
        MAIL_SERVER=_env("MAIL_SERVER", "smtp.gmail.com"),
        MAIL_PORT=int(_env("MAIL_PORT", "587")),
        MAIL_USE_TLS=_env_flag("MAIL_USE_TLS", "true"),
        MAIL_USE_SSL=_env_flag("MAIL_USE_SSL", "false"),
        MAIL_USERNAME=_env("MAIL_USERNAME"),
        # App passwords are shown with spaces but must be sent without them.
        MAIL_PASSWORD=mail_password.replace(" ", "") if mail_password else None,
        MAIL_DEFAULT_SENDER=_env("MAIL_DEFAULT_SENDER", "noreply@hawkerhub.in"),
        CACHE_TTL_MINUTES=int(_env("CACHE_TTL_MINUTES", "30")),
        MAX_NOTIFICATIONS=int(_env("MAX_NOTIFICATIONS", "50")),
        NOTIFICATION_ICON=_env("NOTIFICATION_ICON", "/logo192.png"),
        PUSH_ENABLED=_env_flag("PUSH_ENABLED", "true"),
    )

    if test_config:
        app.config.update(test_config)

    # Initialize Firebase Admin SDK only if not in testing mode
    if not app.config.get("TESTING"):
        _init_firebase(app)

    # Initialize extensions
    mail.init_app(app)
    csrf.init_app(app)

    from .notifications.services import NotificationService

    notification_service = NotificationService(
        max_notifications=app.config["MAX_NOTIFICATIONS"],
        icon=app.config["NOTIFICATION_ICON"],
        push_enabled=app.config["PUSH_ENABLED"] and not app.config.get("TESTING"),
    )
    app.extensions["notifications"] = notification_service

    # Register blueprints
    from . import auth as auth_bp

    app.register_blueprint(auth_bp.bp)

    from . import api as api_bp

    csrf.exempt(api_bp.bp)
    app.register_blueprint(api_bp.bp)

    from . import catalog as catalog_bp

    app.register_blueprint(catalog_bp.bp)

    from . import orders as orders_bp

    app.register_blueprint(orders_bp.bp)

    from . import group_order as group_order_bp

    app.register_blueprint(group_order_bp.bp)

    from . import notifications as notifications_bp

    app.register_blueprint(notifications_bp.bp)

    from . import reviews as reviews_bp

    app.register_blueprint(reviews_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.before_request
    def load_logged_in_user():
        """If a user_id is in the session, load the user data from Firestore and store it in g."""
        user_id = session.get("user_id")
        g.user = None
        if user_id is None:
            return

        try:
            db = firestore.client()
            user_doc = db.collection("users").document(user_id).get()
            if user_doc.exists:
                g.user = user_doc.to_dict()
                g.user["uid"] = user_id
            else:
                # Signed in but profile not created yet; /auth/profile needs the session.
                current_app.logger.info(f"User {user_id} has no profile yet.")
        except Exception as e:
            current_app.logger.error(f"Error loading user from session: {e}")
            session.clear()

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app


def get_notification_service():
    """Return the notification service bound to the current app."""
    return current_app.extensions["notifications"]
