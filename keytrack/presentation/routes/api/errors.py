from flask import jsonify

from keytrack.business.errors import (
    AssetDomainError,
    InvalidStateError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from keytrack.presentation.routes.api import api_bp
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.routes.errors")

STATUS_CODES = (
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (ValidationError, 400),
    (StoreError, 503),
)


def status_for(error: AssetDomainError) -> int:
    for error_class, status in STATUS_CODES:
        if isinstance(error, error_class):
            return status
    return 500


@api_bp.errorhandler(AssetDomainError)
def handle_domain_error(error):
    status = status_for(error)
    if status >= 500:
        logger.error(f"{type(error).__name__}: {error}")
    else:
        logger.debug(f"{type(error).__name__}: {error}")
    return jsonify({'error': type(error).__name__, 'message': str(error)}), status


@api_bp.errorhandler(429)
def handle_rate_limit(error):
    return jsonify({'error': 'RateLimitExceeded', 'message': str(error.description)}), 429
