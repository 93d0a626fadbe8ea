from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os
from keytrack.utils.logger import get_logger

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["2000 per day", "500 per hour"],
    storage_uri="memory://"  # Use Redis in production for distributed systems
)

# Store ceiling for mutations in one atomic commit
MAX_DELETE_BATCH_SIZE = 500


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


def create_app(test_config=None):
    from pathlib import Path

    app = Flask(__name__)

    logger = get_logger("keytrack")
    logger.info("Initializing Flask application")

    # Configuration
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY')

    db_env = os.environ.get('DATABASE_URL')
    if db_env:
        app.config['SQLALCHEMY_DATABASE_URI'] = db_env
    else:
        # Keep the SQLite file under instance/ so path resolution is reliable
        base_dir = Path(__file__).parent.parent
        instance_dir = base_dir / 'instance'
        instance_dir.mkdir(parents=True, exist_ok=True)
        default_db_path = instance_dir / 'keytrack.db'
        app.config['SQLALCHEMY_DATABASE_URI'] = f"sqlite:///{str(default_db_path.resolve())}"

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Engine settings
    batch_size = int(os.environ.get('KEYTRACK_DELETE_BATCH_SIZE', str(MAX_DELETE_BATCH_SIZE)))
    app.config['KEYTRACK_DELETE_BATCH_SIZE'] = max(1, min(batch_size, MAX_DELETE_BATCH_SIZE))
    app.config['KEYTRACK_SEARCH_THRESHOLD'] = float(os.environ.get('KEYTRACK_SEARCH_THRESHOLD', '0.3'))
    app.config['KEYTRACK_DELETE_ALL_PHRASE'] = 'DELETE ALL'

    app.config['RATELIMIT_ENABLED'] = _env_flag('RATELIMIT_ENABLED', 'True')

    if test_config:
        app.config.update(test_config)

    # SECURITY: Require SECRET_KEY outside of tests - no fallback
    if not app.config['SECRET_KEY'] and not app.config.get('TESTING'):
        logger.critical("SECRET_KEY not set in environment! Application cannot start.")
        raise RuntimeError("SECRET_KEY environment variable is required")

    logger.debug(f"Database configured: {app.config['SQLALCHEMY_DATABASE_URI'].split(':', 1)[0]}")

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    logger.debug("Extensions initialized")

    # Import models to ensure they're registered with SQLAlchemy
    from keytrack.data.core.asset_info.asset import Asset
    from keytrack.data.core.event_info.log_entry import LogEntry
    from keytrack.data.core.audit_info.audit_record import AuditRecord

    logger.debug("Models imported and registered")

    # One store per application so subscriptions outlive a single request
    from keytrack.data.store.sql_asset_store import SqlAssetStore
    app.extensions['keytrack_store'] = SqlAssetStore(
        max_batch_size=app.config['KEYTRACK_DELETE_BATCH_SIZE']
    )

    # Register blueprints
    from keytrack.presentation.routes import init_app as init_routes
    init_routes(app)

    return app
