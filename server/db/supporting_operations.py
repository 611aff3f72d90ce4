# 周边支持业务操作：设置项、后台管理员、菜单与套餐维护

import json
import uuid
from typing import List, Optional, Dict, Any, Iterable

from .manager import DatabaseManager
from .core_operations import utc_now

CATEGORY_FIELDS = ('name', 'display_order', 'active')
ITEM_FIELDS = ('category_id', 'name', 'description', 'price_cents', 'pricing_type',
               'serves_count', 'image_url', 'active', 'display_order')

PACKAGE_FIELDS = ('name', 'description', 'type', 'image_url', 'badge', 'min_guests',
                  'active', 'display_order')

# 套餐下属的表：表名 -> (父表, 父键列, 可写字段)
PACKAGE_CHILDREN = {
    'package_tiers': ('menu_packages', 'package_id',
                      ('name', 'description', 'select_count', 'price_cents', 'active', 'display_order')),
    'package_upgrades': ('menu_packages', 'package_id',
                         ('name', 'description', 'price_per_person_cents', 'active', 'display_order')),
    'package_categories': ('menu_packages', 'package_id',
                           ('name', 'description', 'image_url', 'active', 'display_order')),
    'package_category_items': ('package_categories', 'category_id',
                               ('name', 'description', 'active', 'display_order')),
    'package_items': ('menu_packages', 'package_id',
                      ('name', 'description', 'image_url', 'price_cents', 'tier_prices', 'badge',
                       'active', 'display_order')),
}


def _new_id() -> str:
    return uuid.uuid4().hex


def _row_to_dict(row) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    data = dict(row)
    for flag in ('active', 'must_set_password'):
        if flag in data:
            data[flag] = bool(data[flag])
    if data.get('tier_prices') is not None:
        data['tier_prices'] = json.loads(data['tier_prices'])
    return data


def _child_table(table: str):
    if table not in PACKAGE_CHILDREN:
        raise ValueError(f"Unknown package table: {table}")
    return PACKAGE_CHILDREN[table]


def _encode_tier_prices(values: Dict[str, Any]) -> Dict[str, Any]:
    if values.get('tier_prices') is None:
        return values
    return {**values, 'tier_prices': json.dumps(values['tier_prices'])}


class SupportingOperations:
    """
    周边支持业务操作类
    """
    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    # ===== 设置项 =====

    def get_settings(self, keys: Optional[Iterable[str]] = None) -> Dict[str, str]:
        """
        读取设置项

        Args:
            keys: 只读取指定键，None 表示全部
        """
        if keys is None:
            rows = self.db.conn.execute("SELECT key, value FROM settings").fetchall()
        else:
            keys = list(keys)
            if not keys:
                return {}
            placeholders = ','.join('?' for _ in keys)
            rows = self.db.conn.execute(
                f"SELECT key, value FROM settings WHERE key IN ({placeholders})", keys
            ).fetchall()

        return {row['key']: row['value'] for row in rows}

    def upsert_settings(self, values: Dict[str, str]) -> int:
        """
        批量写入设置项（存在则更新）

        Returns:
            写入的键数量
        """
        with self.db.transaction() as conn:
            for key, value in values.items():
                conn.execute("""
                    INSERT INTO settings (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """, [key, value, utc_now()])

        self.db.logger.info(f"设置项已更新: {sorted(values)}")
        return len(values)

    # ===== 后台管理员 =====

    def get_admin_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        row = self.db.conn.execute(
            "SELECT * FROM admin_users WHERE email = ?", [(email or '').strip().lower()]
        ).fetchone()
        return _row_to_dict(row)

    def get_admin_by_id(self, admin_id: str) -> Optional[Dict[str, Any]]:
        row = self.db.conn.execute("SELECT * FROM admin_users WHERE id = ?", [admin_id]).fetchone()
        return _row_to_dict(row)

    def create_admin(self, email: str, name: Optional[str] = None,
                     password_hash: Optional[str] = None) -> Dict[str, Any]:
        """
        创建管理员；未提供密码哈希时首次登录需要先设置密码
        """
        email = (email or '').strip().lower()
        if not email:
            raise ValueError("Admin email is required")
        if self.get_admin_by_email(email):
            raise ValueError(f"Admin {email} already exists")

        admin_id = _new_id()
        self.db.execute_single("""
            INSERT INTO admin_users (id, email, name, password_hash, must_set_password)
            VALUES (?, ?, ?, ?, ?)
        """, [admin_id, email, name, password_hash, 0 if password_hash else 1])

        self.db.logger.info(f"管理员已创建: {email}")
        return self.get_admin_by_id(admin_id)

    def set_admin_password(self, admin_id: str, password_hash: str):
        self.db.execute_single("""
            UPDATE admin_users
            SET password_hash = ?, must_set_password = 0, updated_at = ?
            WHERE id = ?
        """, [password_hash, utc_now(), admin_id])

    # ===== 菜单分类 =====

    def list_categories(self, include_items: bool = True, active_only: bool = False) -> List[Dict[str, Any]]:
        """
        分类按 display_order 排序，可附带各自的菜品
        """
        where = "WHERE active = 1" if active_only else ""
        categories = [
            _row_to_dict(row) for row in self.db.conn.execute(
                f"SELECT * FROM menu_categories {where} ORDER BY display_order ASC, name ASC"
            ).fetchall()
        ]

        if include_items:
            for category in categories:
                category['items'] = self.list_items(category_id=category['id'], active_only=active_only)

        return categories

    def get_category(self, category_id: str) -> Optional[Dict[str, Any]]:
        row = self.db.conn.execute("SELECT * FROM menu_categories WHERE id = ?", [category_id]).fetchone()
        return _row_to_dict(row)

    def create_category(self, name: str) -> Dict[str, Any]:
        if not name or not name.strip():
            raise ValueError("Name is required")

        next_order = self.db.conn.execute(
            "SELECT COALESCE(MAX(display_order), 0) + 1 FROM menu_categories"
        ).fetchone()[0]

        category_id = _new_id()
        self.db.execute_single(
            "INSERT INTO menu_categories (id, name, display_order) VALUES (?, ?, ?)",
            [category_id, name.strip(), next_order]
        )
        return self.get_category(category_id)

    def update_category(self, category_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._apply_changes('menu_categories', category_id, changes, CATEGORY_FIELDS)
        return self.get_category(category_id)

    def delete_category(self, category_id: str) -> bool:
        """删除分类，其下菜品级联删除"""
        cursor = self.db.execute_single("DELETE FROM menu_categories WHERE id = ?", [category_id])
        return cursor.rowcount == 1

    # ===== 菜品 =====

    def list_items(self, category_id: Optional[str] = None, active_only: bool = False) -> List[Dict[str, Any]]:
        conditions, params = [], []
        if category_id:
            conditions.append("category_id = ?")
            params.append(category_id)
        if active_only:
            conditions.append("active = 1")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = self.db.conn.execute(
            f"SELECT * FROM menu_items {where} ORDER BY display_order ASC, name ASC", params
        ).fetchall()
        return [_row_to_dict(row) for row in rows]

    def get_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        row = self.db.conn.execute("SELECT * FROM menu_items WHERE id = ?", [item_id]).fetchone()
        return _row_to_dict(row)

    def create_item(self, category_id: str, name: str, price_cents: int, pricing_type: str = 'fixed',
                    description: Optional[str] = None, serves_count: Optional[int] = None,
                    image_url: Optional[str] = None) -> Dict[str, Any]:
        """
        新建菜品，排在所属分类末尾

        Raises:
            ValueError: 分类不存在
        """
        if not self.get_category(category_id):
            raise ValueError(f"Category {category_id} does not exist")

        next_order = self.db.conn.execute(
            "SELECT COALESCE(MAX(display_order), 0) + 1 FROM menu_items WHERE category_id = ?",
            [category_id]
        ).fetchone()[0]

        item_id = _new_id()
        self.db.execute_single("""
            INSERT INTO menu_items (id, category_id, name, description, price_cents, pricing_type,
                                    serves_count, image_url, display_order)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [item_id, category_id, name, description, price_cents, pricing_type,
              serves_count, image_url, next_order])
        return self.get_item(item_id)

    def update_item(self, item_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if 'category_id' in changes and not self.get_category(changes['category_id']):
            raise ValueError(f"Category {changes['category_id']} does not exist")
        self._apply_changes('menu_items', item_id, changes, ITEM_FIELDS)
        return self.get_item(item_id)

    def delete_item(self, item_id: str) -> bool:
        """删除菜品，历史订单明细中的 menu_item_id 置空"""
        cursor = self.db.execute_single("DELETE FROM menu_items WHERE id = ?", [item_id])
        return cursor.rowcount == 1

    # ===== 套餐 =====

    def list_packages(self, active_only: bool = False) -> List[Dict[str, Any]]:
        """
        套餐列表，每个套餐附带档位、分类（含可选项）、单品和加购项
        """
        where = "WHERE active = 1" if active_only else ""
        rows = self.db.conn.execute(
            f"SELECT * FROM menu_packages {where} ORDER BY display_order ASC, name ASC"
        ).fetchall()
        return [self._with_children(_row_to_dict(row), active_only) for row in rows]

    def get_package(self, package_id: str, include_children: bool = True) -> Optional[Dict[str, Any]]:
        package = _row_to_dict(
            self.db.conn.execute("SELECT * FROM menu_packages WHERE id = ?", [package_id]).fetchone()
        )
        if package is None or not include_children:
            return package
        return self._with_children(package, active_only=False)

    def _with_children(self, package: Dict[str, Any], active_only: bool) -> Dict[str, Any]:
        package_id = package['id']
        package['tiers'] = self.list_package_children('package_tiers', package_id, active_only)
        package['upgrades'] = self.list_package_children('package_upgrades', package_id, active_only)
        package['items'] = self.list_package_children('package_items', package_id, active_only)
        package['categories'] = self.list_package_children('package_categories', package_id, active_only)
        for category in package['categories']:
            category['items'] = self.list_package_children('package_category_items', category['id'], active_only)
        return package

    def create_package(self, name: str, package_type: str, description: Optional[str] = None,
                       image_url: Optional[str] = None, badge: Optional[str] = None,
                       min_guests: Optional[int] = None) -> Dict[str, Any]:
        next_order = self.db.conn.execute(
            "SELECT COALESCE(MAX(display_order), 0) + 1 FROM menu_packages"
        ).fetchone()[0]

        package_id = _new_id()
        self.db.execute_single("""
            INSERT INTO menu_packages (id, name, description, type, image_url, badge, min_guests, display_order)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, [package_id, name, description, package_type, image_url, badge, min_guests, next_order])

        self.db.logger.info(f"套餐已创建: {name} ({package_type})")
        return self.get_package(package_id)

    def update_package(self, package_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        self._apply_changes('menu_packages', package_id, changes, PACKAGE_FIELDS)
        return self.get_package(package_id)

    def delete_package(self, package_id: str) -> bool:
        """删除套餐，档位、分类、单品和加购项级联删除"""
        cursor = self.db.execute_single("DELETE FROM menu_packages WHERE id = ?", [package_id])
        return cursor.rowcount == 1

    def list_package_children(self, table: str, parent_id: str, active_only: bool = False) -> List[Dict[str, Any]]:
        _, parent_column, _ = _child_table(table)
        where = f"WHERE {parent_column} = ?" + (" AND active = 1" if active_only else "")
        rows = self.db.conn.execute(
            f"SELECT * FROM {table} {where} ORDER BY display_order ASC, name ASC", [parent_id]
        ).fetchall()
        return [_row_to_dict(row) for row in rows]

    def get_package_child(self, table: str, child_id: str) -> Optional[Dict[str, Any]]:
        _child_table(table)
        row = self.db.conn.execute(f"SELECT * FROM {table} WHERE id = ?", [child_id]).fetchone()
        return _row_to_dict(row)

    def create_package_child(self, table: str, parent_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        新建套餐下属记录，排在同一父记录末尾

        Args:
            table: PACKAGE_CHILDREN 中的表名
            parent_id: 套餐ID（分类可选项则为分类ID）
            values: 字段值，不在可写字段内的键被忽略

        Raises:
            ValueError: 父记录不存在
        """
        parent_table, parent_column, fields = _child_table(table)
        if not self.db.conn.execute(f"SELECT 1 FROM {parent_table} WHERE id = ?", [parent_id]).fetchone():
            raise ValueError(f"Parent {parent_id} does not exist")

        next_order = self.db.conn.execute(
            f"SELECT COALESCE(MAX(display_order), 0) + 1 FROM {table} WHERE {parent_column} = ?",
            [parent_id]
        ).fetchone()[0]

        row = {k: v for k, v in _encode_tier_prices(values).items()
               if k in fields and k not in ('active', 'display_order')}
        row.update({'id': _new_id(), parent_column: parent_id, 'display_order': next_order})

        columns = list(row)
        self.db.execute_single(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
            [row[col] for col in columns]
        )
        return self.get_package_child(table, row['id'])

    def update_package_child(self, table: str, child_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        _, _, fields = _child_table(table)
        self._apply_changes(table, child_id, _encode_tier_prices(changes), fields)
        return self.get_package_child(table, child_id)

    def delete_package_child(self, table: str, child_id: str) -> bool:
        _child_table(table)
        cursor = self.db.execute_single(f"DELETE FROM {table} WHERE id = ?", [child_id])
        return cursor.rowcount == 1

    def _apply_changes(self, table: str, row_id: str, changes: Dict[str, Any], allowed: Iterable[str]):
        fields = {k: v for k, v in changes.items() if k in allowed}
        if not fields:
            return

        for flag in ('active',):
            if flag in fields:
                fields[flag] = 1 if fields[flag] else 0

        set_clause = ', '.join(f"{col} = ?" for col in fields)
        self.db.execute_single(
            f"UPDATE {table} SET {set_clause}, updated_at = ? WHERE id = ?",
            list(fields.values()) + [utc_now(), row_id]
        )
