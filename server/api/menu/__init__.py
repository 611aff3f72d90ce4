# 菜单模块

from .routes import router as menu_router
from .models import MenuCategoryView, MenuItemView

__all__ = [
    "menu_router",
    "MenuCategoryView",
    "MenuItemView"
]
