"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 Store / Coordinator 边界统一捕获，并转换成可直接展示的错误文案。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "DUPLICATE_ENTRY"）。
        message: 用户可读错误信息，直接用于界面展示。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 path、message_id 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """后端返回非 2xx、响应体为空或无法解析时抛出。"""


class ValidationError(BusinessError):
    """输入校验失败：空输入、重复名称、重复词条、未知 id 等。"""


class StorageError(BusinessError):
    """快照读写或解码失败。"""


class PlaybackError(BusinessError):
    """音频无法解码或播放。"""
