# 安全工具（JWT、密码哈希）

import jwt
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from passlib.context import CryptContext


class JWTManager:
    """
    JWT令牌管理器

    后台管理员登录后签发 Bearer Token，载荷包含 admin_id、email、is_admin。
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256",
                 access_token_expire_minutes: int = 60 * 24 * 7):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes

    def create_access_token(self, data: Dict[str, Any]) -> str:
        """
        创建访问令牌

        Args:
            data: 要编码的数据

        Returns:
            JWT令牌字符串
        """
        now = datetime.now(timezone.utc)
        to_encode = data.copy()
        to_encode.update({
            "exp": now + timedelta(minutes=self.access_token_expire_minutes),
            "iat": now
        })

        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        验证JWT令牌

        Returns:
            解码后的数据，过期或无效返回None
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    验证密码，哈希为空时直接返回False
    """
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)
