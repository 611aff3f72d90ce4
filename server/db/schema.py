# 数据表结构定义与初始化

import logging
from typing import Dict

from .manager import DatabaseManager

logger = logging.getLogger(__name__)

# 设置项默认值（仅在键不存在时写入）
DEFAULT_SETTINGS: Dict[str, str] = {
    'notification_email': 'orders@example.com',
    'delivery_fee': '25.00',
    'min_order_amount': '0',
    'lead_time_hours': '24',
    'business_name': 'BlueCilantro',
    'business_phone': '',
    'business_address': '',
    'send_customer_confirmation': 'false',
}

TABLES = [
    ("admin_users", """
    CREATE TABLE IF NOT EXISTS admin_users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE NOT NULL,                -- 统一小写存储
        name TEXT,
        password_hash TEXT,                        -- 为空表示尚未设置密码
        must_set_password INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """),

    ("settings", """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL DEFAULT '',
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """),

    ("menu_categories", """
    CREATE TABLE IF NOT EXISTS menu_categories (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        display_order INTEGER NOT NULL DEFAULT 0,
        active INTEGER NOT NULL DEFAULT 1,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """),

    ("menu_items", """
    CREATE TABLE IF NOT EXISTS menu_items (
        id TEXT PRIMARY KEY,
        category_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        price_cents INTEGER NOT NULL,              -- 单价（分）
        pricing_type TEXT NOT NULL DEFAULT 'fixed',  -- fixed / per_person
        serves_count INTEGER,
        image_url TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        display_order INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (category_id) REFERENCES menu_categories(id) ON DELETE CASCADE
    )
    """),

    ("menu_packages", """
    CREATE TABLE IF NOT EXISTS menu_packages (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        type TEXT NOT NULL,                        -- selection / quantity / fixed
        image_url TEXT,
        badge TEXT,
        min_guests INTEGER,
        active INTEGER NOT NULL DEFAULT 1,
        display_order INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        CHECK (type IN ('selection', 'quantity', 'fixed'))
    )
    """),

    ("package_tiers", """
    CREATE TABLE IF NOT EXISTS package_tiers (
        id TEXT PRIMARY KEY,
        package_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        select_count INTEGER,                      -- 每个分类可选数量
        price_cents INTEGER NOT NULL,              -- 每人价格（分）
        active INTEGER NOT NULL DEFAULT 1,
        display_order INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (package_id) REFERENCES menu_packages(id) ON DELETE CASCADE
    )
    """),

    ("package_upgrades", """
    CREATE TABLE IF NOT EXISTS package_upgrades (
        id TEXT PRIMARY KEY,
        package_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        price_per_person_cents INTEGER NOT NULL,
        active INTEGER NOT NULL DEFAULT 1,
        display_order INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (package_id) REFERENCES menu_packages(id) ON DELETE CASCADE
    )
    """),

    ("package_categories", """
    CREATE TABLE IF NOT EXISTS package_categories (
        id TEXT PRIMARY KEY,
        package_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        image_url TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        display_order INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (package_id) REFERENCES menu_packages(id) ON DELETE CASCADE
    )
    """),

    ("package_category_items", """
    CREATE TABLE IF NOT EXISTS package_category_items (
        id TEXT PRIMARY KEY,
        category_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        display_order INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (category_id) REFERENCES package_categories(id) ON DELETE CASCADE
    )
    """),

    ("package_items", """
    CREATE TABLE IF NOT EXISTS package_items (
        id TEXT PRIMARY KEY,
        package_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        image_url TEXT,
        price_cents INTEGER,                       -- 单价；按档位定价时为空
        tier_prices TEXT,                          -- JSON: 档位ID -> 价格（分）
        badge TEXT,
        active INTEGER NOT NULL DEFAULT 1,
        display_order INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (package_id) REFERENCES menu_packages(id) ON DELETE CASCADE
    )
    """),

    ("orders", """
    CREATE TABLE IF NOT EXISTS orders (
        id TEXT PRIMARY KEY,
        status TEXT NOT NULL DEFAULT 'new',        -- new/confirmed/completed/cancelled
        payment_status TEXT,                       -- pending/authorized/paid/failed/cancelled/test_bypass
        customer_name TEXT NOT NULL,
        customer_email TEXT NOT NULL,
        customer_phone TEXT NOT NULL,
        customer_address TEXT,
        fulfillment_type TEXT NOT NULL DEFAULT 'delivery',
        scheduled_date TEXT NOT NULL,              -- YYYY-MM-DD
        scheduled_time TEXT NOT NULL,
        subtotal_cents INTEGER NOT NULL,
        delivery_fee_cents INTEGER NOT NULL DEFAULT 0,
        total_cents INTEGER NOT NULL,              -- = subtotal_cents + delivery_fee_cents
        notes TEXT,
        stripe_session_id TEXT UNIQUE,
        stripe_payment_intent_id TEXT,
        paid_at TIMESTAMP,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        CHECK (total_cents = subtotal_cents + delivery_fee_cents)
    )
    """),

    ("order_items", """
    CREATE TABLE IF NOT EXISTS order_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL,
        menu_item_id TEXT,                         -- 菜品删除后置空，快照字段保留
        item_name TEXT NOT NULL,
        item_price_cents INTEGER NOT NULL,
        pricing_type TEXT NOT NULL,
        quantity INTEGER NOT NULL,
        guest_count INTEGER,
        line_total_cents INTEGER NOT NULL,
        notes TEXT,
        FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE,
        FOREIGN KEY (menu_item_id) REFERENCES menu_items(id) ON DELETE SET NULL
    )
    """),
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status)",
    "CREATE INDEX IF NOT EXISTS idx_orders_scheduled_date ON orders(scheduled_date)",
    "CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items(order_id)",
    "CREATE INDEX IF NOT EXISTS idx_menu_items_category ON menu_items(category_id)",
    "CREATE INDEX IF NOT EXISTS idx_package_tiers_package ON package_tiers(package_id)",
    "CREATE INDEX IF NOT EXISTS idx_package_upgrades_package ON package_upgrades(package_id)",
    "CREATE INDEX IF NOT EXISTS idx_package_categories_package ON package_categories(package_id)",
    "CREATE INDEX IF NOT EXISTS idx_package_category_items_category ON package_category_items(category_id)",
    "CREATE INDEX IF NOT EXISTS idx_package_items_package ON package_items(package_id)",
]


def create_tables(db: DatabaseManager):
    for table_name, sql in TABLES:
        db.execute_single(sql)
        logger.debug(f"数据表就绪: {table_name}")

    for sql in INDEXES:
        db.execute_single(sql)


def seed_default_settings(db: DatabaseManager):
    with db.transaction() as conn:
        for key, value in DEFAULT_SETTINGS.items():
            conn.execute(
                "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)",
                [key, value]
            )


def init_database(db: DatabaseManager, seed: bool = True):
    """
    建表（幂等）并写入默认设置
    """
    create_tables(db)
    if seed:
        seed_default_settings(db)
    logger.info(f"数据库初始化完成: {db.db_path}")
