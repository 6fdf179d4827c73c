"""Initialize the Flask app and its extensions."""

import json
import os

import firebase_admin
from firebase_admin import credentials
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from .constants import LISTING_DRAFT_TTL_SECONDS, MAX_PROOF_SIZE
from .extensions import csrf, mail


def _env_flag(name, default):
    return (os.environ.get(name) or default).lower() in ["true", "1", "t"]


def _load_credentials(app):
    """Return ``(credential, project_id)`` from the first source that works.

    Sources are tried in order: the ``FIREBASE_CREDENTIALS_JSON`` variable,
    a ``firebase_credentials.json`` file next to the package, then the
    application default credentials.
    """
    raw = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if raw:
        try:
            info = json.loads(raw)
            return credentials.Certificate(info), info.get("project_id")
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    key_file = os.path.join(
        os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
    )
    if os.path.exists(key_file):
        try:
            with open(key_file, "r") as f:
                info = json.load(f)
            return credentials.Certificate(key_file), info.get("project_id")
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error loading credentials from {key_file}: {e}")

    try:
        return credentials.ApplicationDefault(), os.environ.get("FIREBASE_PROJECT_ID")
    except Exception as e:
        app.logger.error(f"No usable Firebase credentials found: {e}")
        return None, None


def init_firebase(app):
    """Initialize the Firebase Admin SDK with Firestore and Storage."""
    cred, project_id = _load_credentials(app)
    if not cred or firebase_admin._apps:
        return

    bucket = os.environ.get("FIREBASE_STORAGE_BUCKET")
    if not bucket and project_id:
        bucket = f"{project_id}.firebasestorage.app"
    options = {"storageBucket": bucket}
    if project_id:
        options["projectId"] = project_id

    try:
        firebase_admin.initialize_app(cred, options)
    except ValueError:
        app.logger.info("Firebase app already initialized.")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        MAIL_SERVER=os.environ.get("MAIL_SERVER") or "smtp.gmail.com",
        MAIL_PORT=int(os.environ.get("MAIL_PORT") or 587),
        MAIL_USE_TLS=_env_flag("MAIL_USE_TLS", "true"),
        MAIL_USE_SSL=_env_flag("MAIL_USE_SSL", "false"),
        MAIL_USERNAME=os.environ.get("MAIL_USERNAME"),
        MAIL_PASSWORD=os.environ.get("MAIL_PASSWORD"),
        MAIL_DEFAULT_SENDER=os.environ.get("MAIL_DEFAULT_SENDER")
        or "noreply@splitbuy.app",
        NOTIFY_BY_EMAIL=_env_flag("NOTIFY_BY_EMAIL", "false"),
        MAX_PROOF_SIZE=int(os.environ.get("MAX_PROOF_SIZE") or MAX_PROOF_SIZE),
        LISTING_DRAFT_TTL_SECONDS=int(
            os.environ.get("LISTING_DRAFT_TTL_SECONDS") or LISTING_DRAFT_TTL_SECONDS
        ),
        LISTING_DRAFT_MINT_KEY=os.environ.get("LISTING_DRAFT_MINT_KEY"),
    )

    if test_config:
        app.config.update(test_config)

    # Initialize Firebase Admin SDK only if not in testing mode
    if not app.config.get("TESTING"):
        init_firebase(app)

    # Initialize extensions
    mail.init_app(app)
    csrf.init_app(app)

    from .listings.store import EXTENSION_KEY, FirestoreListingDraftStore

    app.extensions[EXTENSION_KEY] = app.config.get(
        "LISTING_DRAFT_STORE"
    ) or FirestoreListingDraftStore(app.config["LISTING_DRAFT_TTL_SECONDS"])

    # Register blueprints; the JSON API does not use CSRF tokens
    from . import purchase as purchase_bp

    csrf.exempt(purchase_bp.bp)
    app.register_blueprint(purchase_bp.bp)

    from . import reviews as reviews_bp

    csrf.exempt(reviews_bp.bp)
    app.register_blueprint(reviews_bp.bp)

    from . import listings as listings_bp

    csrf.exempt(listings_bp.bp)
    app.register_blueprint(listings_bp.bp)

    from . import group_buys as group_buys_bp

    csrf.exempt(group_buys_bp.bp)
    app.register_blueprint(group_buys_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    @app.route("/health")
    def health_check():
        """Perform a simple health check."""
        return "OK", 200

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
