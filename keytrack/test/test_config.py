"""
Test application configuration and the .env generator.
"""

import pytest

from generate_env import DEV_SECRET_KEY, EnvGenerator
from keytrack import MAX_DELETE_BATCH_SIZE, create_app


def test_secret_key_required_outside_testing(monkeypatch):
    monkeypatch.delenv('SECRET_KEY', raising=False)
    with pytest.raises(RuntimeError):
        create_app({'SQLALCHEMY_DATABASE_URI': 'sqlite://'})


def test_batch_size_is_clamped(monkeypatch):
    monkeypatch.setenv('KEYTRACK_DELETE_BATCH_SIZE', '5000')
    app = create_app({'TESTING': True, 'SQLALCHEMY_DATABASE_URI': 'sqlite://'})

    assert app.config['KEYTRACK_DELETE_BATCH_SIZE'] == MAX_DELETE_BATCH_SIZE
    assert app.extensions['keytrack_store'].max_batch_size == MAX_DELETE_BATCH_SIZE
    assert app.config['KEYTRACK_DELETE_ALL_PHRASE'] == 'DELETE ALL'


def test_env_generator_writes_all_settings(tmp_path):
    env_file = tmp_path / '.env'
    assert EnvGenerator(dev_mode=True, env_file=env_file).generate(force=True)

    content = env_file.read_text()
    assert f"SECRET_KEY={DEV_SECRET_KEY}" in content
    assert "FLASK_DEBUG=True" in content
    assert "KEYTRACK_DELETE_BATCH_SIZE=500" in content
    assert "DATABASE_URL=sqlite:///instance/keytrack.db" in content


def test_env_generator_backs_up_existing_file(tmp_path):
    env_file = tmp_path / '.env'
    env_file.write_text("OLD=1\n")

    assert EnvGenerator(env_file=env_file).generate(force=True)

    backups = list(tmp_path.glob('.env.backup.*'))
    assert len(backups) == 1 and backups[0].read_text() == "OLD=1\n"
    assert "FLASK_DEBUG=False" in env_file.read_text()
    assert DEV_SECRET_KEY not in env_file.read_text()
