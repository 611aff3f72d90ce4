# 配置加载与安全工具测试

import pytest

from utils.config import Config, _replace_env_vars, get_database_path, validate_config
from utils.security import JWTManager, hash_password, verify_password


class TestConfig:
    """配置测试"""

    def test_loads_test_config(self):
        config = Config()

        assert config.env == 'test'
        assert config.get('payment.currency') == 'cad'
        assert config.get('payment.missing', 'fallback') == 'fallback'
        assert config.base_url == 'http://localhost:3000'
        assert config.get_database_config()['path'] == ':memory:'

    def test_env_placeholders(self, monkeypatch):
        monkeypatch.setenv('CATERING_TEST_VAR', 'value')
        monkeypatch.delenv('CATERING_MISSING_VAR', raising=False)

        assert _replace_env_vars('${CATERING_TEST_VAR}') == 'value'
        assert _replace_env_vars('${CATERING_MISSING_VAR:default}') == 'default'
        assert _replace_env_vars('${CATERING_MISSING_VAR}') == ''

    def test_relative_database_path(self):
        path = get_database_path({'database': {'path': 'data/x.db'}})
        assert path.endswith('data/x.db') and path != 'data/x.db'

    def test_validation_requires_jwt_secret(self):
        config = {section: {} for section in ('app', 'server', 'database', 'auth', 'logging', 'payment', 'email')}
        config['app']['base_url'] = 'http://localhost:3000'
        assert validate_config(config) is False

        config['auth']['jwt_secret_key'] = 'secret'
        assert validate_config(config) is True

        del config['payment']
        assert validate_config(config) is False


class TestSecurity:
    """JWT 与密码哈希测试"""

    def test_token_round_trip(self):
        manager = JWTManager("secret", access_token_expire_minutes=5)
        token = manager.create_access_token({"admin_id": "a1", "is_admin": True})

        payload = manager.verify_token(token)
        assert payload["admin_id"] == "a1"
        assert JWTManager("other").verify_token(token) is None

    def test_expired_token(self):
        manager = JWTManager("secret", access_token_expire_minutes=-1)
        assert manager.verify_token(manager.create_access_token({"admin_id": "a1"})) is None

    def test_password_hash(self):
        hashed = hash_password("correct-horse")
        assert verify_password("correct-horse", hashed)
        assert not verify_password("wrong", hashed)
        assert not verify_password("anything", None)
