#!/usr/bin/env python3
# 数据库初始化脚本
# 建表、写入默认设置，可选创建管理员账户

import argparse
import logging
import sys
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from db.manager import DatabaseManager
from db.schema import init_database, TABLES
from db.supporting_operations import SupportingOperations
from utils.config import Config
from utils.security import hash_password


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="初始化餐饮订单数据库")
    parser.add_argument("--admin-email", help="创建管理员账户的邮箱")
    parser.add_argument("--admin-name", default="", help="管理员姓名")
    parser.add_argument(
        "--admin-password",
        help="管理员初始密码；省略时管理员首次登录前需要自行设置密码"
    )
    parser.add_argument("--no-seed", action="store_true", help="不写入默认设置")
    return parser.parse_args(argv)


def create_admin(db_manager: DatabaseManager, email: str, name: str, password: str = None):
    """
    创建管理员，已存在时跳过

    Returns:
        新建或已存在的管理员记录
    """
    support_ops = SupportingOperations(db_manager)

    existing = support_ops.get_admin_by_email(email)
    if existing:
        logging.info(f"管理员已存在: {existing['email']}")
        return existing

    password_hash = hash_password(password) if password else None
    admin = support_ops.create_admin(email, name, password_hash)
    if password_hash:
        logging.info(f"成功创建管理员: {admin['email']}")
    else:
        logging.info(f"成功创建管理员: {admin['email']}（首次登录前需设置密码）")
    return admin


def main(argv=None):
    """
    主函数：初始化数据库
    """
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    args = parse_args(argv)
    config = Config()
    db_path = config.get_database_config()['path']

    logging.info(f"开始初始化数据库: {db_path}")
    logging.info(f"配置环境: {config.env}")

    db_manager = DatabaseManager(db_path)
    try:
        db_manager.connect()
        init_database(db_manager, seed=not args.no_seed)

        if args.admin_email:
            create_admin(db_manager, args.admin_email, args.admin_name, args.admin_password)

        logging.info("数据表状态:")
        for table_name, _ in TABLES:
            count = db_manager.execute_single(f"SELECT COUNT(*) FROM {table_name}").fetchone()[0]
            logging.info(f"  - {table_name}: {count} 条记录")

    except Exception as e:
        logging.error(f"数据库初始化失败: {e}")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
