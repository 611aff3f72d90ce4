# 配置管理工具
# JSON配置文件 + 环境变量占位符替换

import json
import os
import logging
from typing import Dict, Any
import re

REQUIRED_SECTIONS = ['app', 'server', 'database', 'auth', 'logging', 'payment', 'email']

CONFIG_FILES = {
    'production': 'config/config-prod.json',
    'development': 'config/config-dev.json',
    'test': 'config/config-test.json'
}


def _server_dir() -> str:
    script_dir = os.path.dirname(os.path.abspath(__file__))
    return os.path.dirname(script_dir)


def _replace_env_vars(value: str) -> str:
    """
    替换环境变量占位符

    支持 ${ENV_VAR} 和 ${ENV_VAR:默认值} 两种写法。
    环境变量不存在且没有默认值时替换为空字符串，密钥类配置不会残留占位符原文。
    """
    def replace_match(match):
        env_var = match.group(1)
        default = match.group(2) if match.group(2) is not None else ""
        return os.getenv(env_var, default)

    return re.sub(r'\$\{([A-Za-z_][A-Za-z0-9_]*)(?::([^}]*))?\}', replace_match, value)


def _process_config_values(config: Any) -> Any:
    """
    递归处理配置值，替换环境变量
    """
    if isinstance(config, dict):
        return {k: _process_config_values(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_process_config_values(item) for item in config]
    elif isinstance(config, str):
        return _replace_env_vars(config)
    else:
        return config


def load_config() -> Dict[str, Any]:
    """
    加载配置文件
    根据 CONFIG_ENV 环境变量选择配置文件

    Returns:
        配置字典
    """
    config_env = os.getenv('CONFIG_ENV', 'development')
    config_file = CONFIG_FILES.get(config_env, 'config/config.json')

    if not os.path.isabs(config_file):
        config_file = os.path.join(_server_dir(), config_file)

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = json.load(f)

        config = _process_config_values(config)
        config.pop('_comment', None)

        logging.info(f"成功加载配置文件: {config_file}")
        return config

    except FileNotFoundError:
        logging.error(f"配置文件不存在: {config_file}")
        raise
    except json.JSONDecodeError as e:
        logging.error(f"配置文件JSON格式错误: {e}")
        raise


def get_database_path(config: Dict[str, Any]) -> str:
    """
    获取数据库路径（相对路径以server目录为基准）
    """
    db_path = config.get('database', {}).get('path', 'data/catering.db')

    if db_path == ':memory:' or os.path.isabs(db_path):
        return db_path

    return os.path.join(_server_dir(), db_path)


def validate_config(config: Dict[str, Any]) -> bool:
    """
    验证配置文件的完整性

    Returns:
        验证结果
    """
    for section in REQUIRED_SECTIONS:
        if section not in config:
            logging.error(f"配置文件缺少必需的section: {section}")
            return False

    if not config.get('auth', {}).get('jwt_secret_key'):
        logging.error("JWT密钥未配置")
        return False

    if not config.get('app', {}).get('base_url'):
        logging.error("app.base_url 未配置，无法生成支付跳转地址")
        return False

    return True


class Config:
    """
    配置管理类
    """
    def __init__(self):
        self.env = os.getenv('CONFIG_ENV', 'development')
        self.config = load_config()

        if not validate_config(self.config):
            raise ValueError("配置文件验证失败")

    def get(self, key: str, default=None):
        """
        获取配置项，支持点号分隔的嵌套键，如 'payment.currency'
        """
        value = self.config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_database_config(self) -> Dict[str, Any]:
        db_config = self.config.get('database', {}).copy()
        db_config['path'] = get_database_path(self.config)
        return db_config

    @property
    def base_url(self) -> str:
        return self.get('app.base_url', 'http://localhost:3000').rstrip('/')
