"""
Routes package for KeyTrack
JSON API only; authentication and page rendering live outside this service.
"""

from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.routes")


def init_app(app):
    """Initialize all route blueprints with the Flask app"""
    logger.debug("Initializing route blueprints")

    from .api import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    logger.info("Registered api blueprint")
