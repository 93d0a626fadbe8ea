#!/usr/bin/env python3
"""
Database build orchestrator for KeyTrack
Creates the tables and optionally seeds a demo organization
"""

from sqlalchemy import inspect

from keytrack import create_app, db
from keytrack.utils.logger import get_logger

logger = get_logger("keytrack.build")

REQUIRED_TABLES = ('assets', 'asset_logs', 'audit_records')

DEMO_ORG_ID = 'demo-org'

DEMO_KEY_ROWS = [
    {'key_id': 'A1', 'asset_name': 'Main Entrance', 'location': 'Block A', 'quantity': 3, 'key_type': 'Euro cylinder'},
    {'key_id': 'B7', 'asset_name': 'Server Room', 'location': 'Block B', 'quantity': 2, 'key_type': 'Electronic'},
    {'key_id': 'P2', 'asset_name': 'Bike Shed', 'location': 'Yard', 'quantity': 1, 'key_type': 'Padlock'},
]

DEMO_ASSET_ROWS = [
    {'type': 'IT', 'name': 'MacBook Pro 14', 'serial': 'SN-1001', 'location': 'Office 1'},
    {'type': 'VEHICLE', 'name': 'Transit Van', 'serial': 'VAN-22', 'location': 'Depot'},
]


def verify_tables():
    """
    Check that every required table exists

    Returns:
        bool: True if all tables are present
    """
    existing = set(inspect(db.engine).get_table_names())
    missing = [table for table in REQUIRED_TABLES if table not in existing]
    if missing:
        logger.error(f"Missing tables after build: {', '.join(missing)}")
        return False
    return True


def insert_demo_data(store, org_id=DEMO_ORG_ID):
    """Seed a small inventory for local testing; skipped when the org already has assets"""
    from keytrack.business.actor import Actor
    from keytrack.business.lifecycle.bulk_operations import BulkAssetOperations

    if store.list(org_id):
        logger.info(f"Demo org {org_id} already has assets, skipping demo data")
        return None

    operations = BulkAssetOperations(store, org_id, Actor(id='system', name='System'))
    keys = operations.import_keys(DEMO_KEY_ROWS)
    assets = operations.import_assets(DEMO_ASSET_ROWS)
    logger.info(f"Demo data inserted: {keys.created} keys, {assets.created} assets")
    return keys, assets


def build_database(app=None, enable_demo_data=False):
    """
    Create all tables

    Args:
        app: Flask app to build against (a new one is created if omitted)
        enable_demo_data (bool): Seed the demo organization after building
    """
    app = app or create_app()

    with app.app_context():
        logger.info("Starting database build")
        db.create_all()

        if not verify_tables():
            raise RuntimeError("Database build incomplete")

        if enable_demo_data:
            insert_demo_data(app.extensions['keytrack_store'])

        logger.info("Database build completed successfully")
