# 套餐模块

from .routes import router as packages_router
from .models import PackageView

__all__ = [
    "packages_router",
    "PackageView"
]
