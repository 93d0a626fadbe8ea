#!/usr/bin/env python3
"""
Run script for KeyTrack
"""

import argparse
import os
import sys

from dotenv import load_dotenv

# Load environment variables from .env file before the app reads them
load_dotenv()

from keytrack import create_app  # noqa: E402
from keytrack.build import build_database  # noqa: E402
from keytrack.utils.logger import get_logger  # noqa: E402

# Run 'python generate_env.py' to create the .env file with a secure SECRET_KEY.

logger = get_logger("keytrack.run")


def parse_arguments():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description='KeyTrack asset lifecycle service')
    parser.add_argument('--build-only', action='store_true',
                        help='Create database tables and exit without starting the server')
    parser.add_argument('--demo-data', action='store_true',
                        help='Seed a demo organization after building the tables')
    return parser.parse_args()


if __name__ == '__main__':
    args = parse_arguments()

    app = create_app()
    logger.debug("Starting KeyTrack...")

    build_database(app, enable_demo_data=args.demo_data)

    if args.build_only:
        logger.debug("Build completed. Exiting without starting web server.")
        sys.exit(0)

    # FLASK_DEBUG: Enable/disable debug mode (default: False for security)
    debug_mode = os.environ.get('FLASK_DEBUG', 'False').lower() in ('true', '1', 'yes', 'on')

    # USE_RELOADER: Enable/disable auto-reloader (default: False in production)
    use_reloader = os.environ.get('USE_RELOADER', 'False').lower() in ('true', '1', 'yes', 'on')

    # FLASK_HOST: Server host (default: 127.0.0.1 for security)
    host = os.environ.get('FLASK_HOST', '127.0.0.1')

    # FLASK_PORT: Server port (default: 5000)
    port = int(os.environ.get('FLASK_PORT', '5000'))

    if debug_mode:
        logger.warning("DEBUG MODE ENABLED - Do not use in production!")

    logger.info(f"Starting server on {host}:{port} (debug={debug_mode}, reloader={use_reloader})")
    app.run(debug=debug_mode, host=host, port=port, use_reloader=use_reloader)
