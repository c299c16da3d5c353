"""
数据库核心层自定义异常模块

提供项目专用的异常类层次结构，用于区分配置错误、资源解析错误、
连接错误等不同类别的失败。异常统一携带错误代码和详细信息字典，
便于调用方在不开启日志的情况下定位问题。
"""

from typing import Any, Dict, Optional


class DBCoreError(Exception):
    """
    数据库核心层基础异常类

    所有自定义异常的基类，提供统一的异常处理接口。

    Attributes:
        message (str): 异常描述信息
        error_code (Optional[str]): 错误代码，用于错误分类
        details (Dict[str, Any]): 详细的错误信息
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化基础异常

        Args:
            message: 异常描述信息
            error_code: 错误代码，用于错误分类和识别
            details: 详细的错误信息字典
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        """返回异常的字符串表示"""
        base_str = f"{self.__class__.__name__}: {self.message}"
        if self.error_code:
            base_str += f" (错误代码: {self.error_code})"
        return base_str

    def to_dict(self) -> Dict[str, Any]:
        """
        将异常信息转换为字典格式

        Returns:
            包含异常信息的字典
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigError(DBCoreError):
    """
    配置相关异常

    处理驱动描述文件、连接设置、配置文件等在使用前即可发现的错误。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        config_file: Optional[str] = None,
        config_key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化配置异常

        Args:
            message: 异常描述信息
            error_code: 错误代码
            config_file: 相关的配置文件路径
            config_key: 相关的配置键
            details: 详细的错误信息
        """
        super().__init__(message, error_code, details)
        self.config_file = config_file
        self.config_key = config_key

        if config_file:
            self.details["config_file"] = config_file
        if config_key:
            self.details["config_key"] = config_key


class CatalogError(ConfigError, ValueError):
    """驱动目录文件顶层结构非法"""


class ConnectorStateError(ConfigError):
    """
    连接器生命周期误用

    例如重复配置，或在关闭之后再次配置同一个连接器实例。
    """


class CryptoError(DBCoreError):
    """
    加密解密相关异常

    处理密钥生成、数据加密、数据解密等过程中出现的错误。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details)
        self.operation = operation

        if operation:
            self.details["operation"] = operation


class ResourceNotFoundError(DBCoreError):
    """
    资源未找到异常

    当某个基础名称下不存在任何可加载的查询或批处理资源时抛出。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        base_name: Optional[str] = None,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化资源未找到异常

        Args:
            message: 异常描述信息
            error_code: 错误代码
            base_name: 查找时使用的基础资源名称
            source: 发起查找的资源标识
            details: 详细的错误信息
        """
        super().__init__(message, error_code, details)
        self.base_name = base_name
        self.source = source

        if base_name:
            self.details["base_name"] = base_name
        if source:
            self.details["source"] = source


class QueryNotFoundError(ResourceNotFoundError):
    """
    查询标识未找到异常

    查询链中的每一级资源都不包含请求的标识时抛出，
    异常中同时记录标识和发起查找的资源名称。
    """

    def __init__(
        self,
        identifier: str,
        source: str,
        error_code: Optional[str] = "QUERY_NOT_FOUND",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            f"查询标识 '{identifier}' 在资源链 '{source}' 中不存在",
            error_code,
            source=source,
            details=details,
        )
        self.identifier = identifier
        self.details["identifier"] = identifier


class DatabaseError(DBCoreError):
    """
    数据库操作基础异常

    处理所有数据库相关操作的通用错误。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        database_type: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化数据库异常

        Args:
            message: 异常描述信息
            error_code: 错误代码
            database_type: 数据库厂商（如：MySQL, SQLite等）
            operation: 数据库操作类型（如：connect, query, execute等）
            details: 详细的错误信息
        """
        super().__init__(message, error_code, details)
        self.database_type = database_type
        self.operation = operation

        if database_type:
            self.details["database_type"] = database_type
        if operation:
            self.details["operation"] = operation


class ConnectionError(DatabaseError):
    """
    数据库连接异常

    处理连接获取失败、连接器未配置或已关闭等情况。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        vendor: Optional[str] = None,
        target: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化连接异常

        Args:
            message: 异常描述信息
            error_code: 错误代码
            vendor: 数据库厂商描述
            target: 连接目标（已屏蔽敏感信息的URL或文件路径）
            details: 详细的错误信息
        """
        super().__init__(
            message, error_code, database_type=vendor, operation="connect", details=details
        )
        self.vendor = vendor
        self.target = target

        if target:
            self.details["target"] = target


class DriverError(DatabaseError):
    """
    数据库驱动异常

    处理驱动实现无法导入、类型不符合要求等情况。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        implementation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, error_code, details=details)
        self.implementation = implementation

        if implementation:
            self.details["implementation"] = implementation


class QueryError(DatabaseError):
    """
    查询执行异常

    处理SQL语句执行过程中出现的错误。
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        query: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        初始化查询异常

        Args:
            message: 异常描述信息
            error_code: 错误代码
            query: 执行的SQL语句
            parameters: 查询参数
            details: 详细的错误信息
        """
        super().__init__(message, error_code, operation="execute", details=details)
        self.query = query
        self.parameters = parameters

        if query:
            self.details["query_preview"] = self._get_query_preview(query)
        if parameters:
            # 只记录参数键名，不记录参数值
            self.details["parameter_keys"] = list(parameters.keys())

    def _get_query_preview(self, query: str, max_length: int = 100) -> str:
        """获取查询语句的预览"""
        if len(query) <= max_length:
            return query
        return query[:max_length] + "..."
