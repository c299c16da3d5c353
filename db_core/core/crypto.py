"""
加密管理模块

使用 cryptography 的 Fernet 对连接设置中的敏感字段做对称加密，
密钥由 PBKDF2-HMAC-SHA256 从随机口令和盐值派生。
"""

import base64
import secrets
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..utils.logging_utils import get_logger
from .exceptions import CryptoError

logger = get_logger(__name__)


class CryptoManager:
    """
    加密管理器

    Attributes:
        password (str): 密钥派生口令
        salt (bytes): 密钥派生盐值
        iterations (int): PBKDF2 迭代次数

    Example:
        >>> crypto = CryptoManager()
        >>> token = crypto.encrypt("secret")
        >>> crypto.decrypt(token)
        'secret'
    """

    SALT_LENGTH = 16
    PASSWORD_LENGTH = 32
    DEFAULT_ITERATIONS = 480000

    def __init__(
        self,
        password: Optional[str] = None,
        salt: Optional[bytes] = None,
        iterations: int = DEFAULT_ITERATIONS,
    ) -> None:
        """
        初始化加密管理器

        Args:
            password: 派生口令，为None时随机生成
            salt: 盐值，为None时随机生成
            iterations: PBKDF2 迭代次数

        Raises:
            CryptoError: 密钥派生失败时
        """
        self.password = password or base64.urlsafe_b64encode(
            secrets.token_bytes(self.PASSWORD_LENGTH)
        ).decode("utf-8")
        self.salt = salt or secrets.token_bytes(self.SALT_LENGTH)
        self.iterations = iterations

        try:
            kdf = PBKDF2HMAC(
                algorithm=hashes.SHA256(),
                length=32,
                salt=self.salt,
                iterations=self.iterations,
            )
            key = base64.urlsafe_b64encode(kdf.derive(self.password.encode("utf-8")))
            self.fernet = Fernet(key)
        except (TypeError, ValueError) as e:
            logger.error(f"加密密钥派生失败: {str(e)}")
            raise CryptoError(f"加密密钥派生失败: {str(e)}", operation="derive_key")

        logger.debug("加密管理器初始化成功")

    def encrypt(self, data: str) -> str:
        """
        加密字符串

        Raises:
            ValueError: 输入不是非空字符串时
        """
        if not data or not isinstance(data, str):
            raise ValueError("加密数据不能为空且必须是字符串")
        return self.fernet.encrypt(data.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str) -> str:
        """
        解密字符串

        Raises:
            ValueError: 输入不是非空字符串时
            CryptoError: 数据被篡改或密钥不匹配时
        """
        if not token or not isinstance(token, str):
            raise ValueError("加密数据不能为空且必须是字符串")
        try:
            return self.fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken:
            logger.error("解密令牌无效")
            raise CryptoError(
                "解密失败: 加密数据可能被篡改或密钥不匹配", operation="decrypt"
            )

    def get_key_info(self) -> Dict[str, Any]:
        """返回可持久化的密钥信息（口令、base64盐值和迭代次数）"""
        return {
            "salt": base64.urlsafe_b64encode(self.salt).decode("utf-8"),
            "password": self.password,
            "iterations": self.iterations,
        }

    @classmethod
    def from_saved_key(
        cls, password: str, salt: str, iterations: int = DEFAULT_ITERATIONS
    ) -> "CryptoManager":
        """
        从 get_key_info 保存的信息恢复加密管理器

        Raises:
            CryptoError: 密钥信息无效时
        """
        if not password or not salt:
            raise CryptoError("密码和盐值不能为空", operation="load_key")
        try:
            salt_bytes = base64.urlsafe_b64decode(salt.encode("utf-8"))
        except ValueError as e:
            raise CryptoError(f"盐值格式无效: {str(e)}", operation="load_key")
        return cls(password, salt_bytes, iterations)

    def __repr__(self) -> str:
        return "CryptoManager(password='***', salt=b'...')"
