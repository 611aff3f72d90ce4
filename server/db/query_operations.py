# 查询业务操作：订单读取、跟踪查询、后台列表

from typing import List, Optional, Dict, Any, Tuple, Iterable, Set

from .manager import DatabaseManager

MIN_LOOKUP_PREFIX = 6


class QueryOperations:
    """
    查询业务操作类，统一返回字典
    """
    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager

    def _validate_pagination(self, page: int, size: int, max_size: int = 100):
        if page < 1:
            raise ValueError("page must be >= 1")
        if size < 1 or size > max_size:
            raise ValueError(f"size must be between 1 and {max_size}")

    def _load_items(self, order_ids: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        if not order_ids:
            return {}

        placeholders = ','.join('?' for _ in order_ids)
        rows = self.db.conn.execute(f"""
            SELECT id, order_id, menu_item_id, item_name, item_price_cents, pricing_type,
                   quantity, guest_count, line_total_cents, notes
            FROM order_items
            WHERE order_id IN ({placeholders})
            ORDER BY id ASC
        """, order_ids).fetchall()

        grouped: Dict[str, List[Dict[str, Any]]] = {order_id: [] for order_id in order_ids}
        for row in rows:
            grouped[row['order_id']].append(dict(row))
        return grouped

    def get_order(self, order_id: str, include_items: bool = True) -> Optional[Dict[str, Any]]:
        """
        按完整ID获取订单

        Returns:
            订单字典（含 items 列表），不存在返回None
        """
        row = self.db.conn.execute("SELECT * FROM orders WHERE id = ?", [order_id]).fetchone()
        if not row:
            return None

        order = dict(row)
        if include_items:
            order['items'] = self._load_items([order_id])[order_id]
        return order

    def existing_menu_item_ids(self, item_ids: Iterable[str]) -> Set[str]:
        """返回仍然存在的菜品ID"""
        item_ids = list(set(item_ids))
        if not item_ids:
            return set()

        placeholders = ','.join('?' for _ in item_ids)
        rows = self.db.conn.execute(
            f"SELECT id FROM menu_items WHERE id IN ({placeholders})", item_ids
        ).fetchall()
        return {row['id'] for row in rows}

    def get_order_by_session(self, session_id: str) -> Optional[Dict[str, Any]]:
        row = self.db.conn.execute(
            "SELECT * FROM orders WHERE stripe_session_id = ?", [session_id]
        ).fetchone()
        return dict(row) if row else None

    def lookup_order(self, id_or_prefix: str) -> Optional[Dict[str, Any]]:
        """
        客户订单跟踪：支持完整ID或ID前缀（至少6位）

        前缀匹配到多个订单时取最新创建的一个。
        """
        id_or_prefix = (id_or_prefix or '').strip().lower()
        if not id_or_prefix:
            return None

        order = self.get_order(id_or_prefix)
        if order or len(id_or_prefix) < MIN_LOOKUP_PREFIX:
            return order

        # LIKE 的通配符需要转义
        escaped = id_or_prefix.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
        row = self.db.conn.execute("""
            SELECT id FROM orders
            WHERE id LIKE ? ESCAPE '\\'
            ORDER BY created_at DESC, rowid DESC
            LIMIT 1
        """, [escaped + '%']).fetchone()

        return self.get_order(row['id']) if row else None

    def list_orders(self, status: Optional[str] = None, scheduled_date: Optional[str] = None,
                    page: int = 1, size: int = 50) -> Tuple[List[Dict[str, Any]], int]:
        """
        后台订单列表，按创建时间倒序

        Args:
            status: 订单状态过滤
            scheduled_date: 送餐日期过滤 (YYYY-MM-DD)
            page: 页码
            size: 每页条数

        Returns:
            (订单列表, 总数)
        """
        self._validate_pagination(page, size)

        where_conditions = []
        params: List[Any] = []

        if status:
            where_conditions.append("status = ?")
            params.append(status)

        if scheduled_date:
            where_conditions.append("scheduled_date = ?")
            params.append(scheduled_date)

        where_clause = f"WHERE {' AND '.join(where_conditions)}" if where_conditions else ""

        total_count = self.db.conn.execute(
            f"SELECT COUNT(*) FROM orders {where_clause}", params
        ).fetchone()[0]

        rows = self.db.conn.execute(f"""
            SELECT * FROM orders
            {where_clause}
            ORDER BY created_at DESC, rowid DESC
            LIMIT ? OFFSET ?
        """, params + [size, (page - 1) * size]).fetchall()

        orders = [dict(row) for row in rows]
        items = self._load_items([order['id'] for order in orders])
        for order in orders:
            order['items'] = items.get(order['id'], [])

        return orders, total_count
