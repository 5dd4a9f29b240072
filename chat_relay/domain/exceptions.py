"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层统一捕获并映射为 HTTP 响应。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "API_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 session_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如 DNS 失败、连接被拒绝、超时等。"""


class ApiError(BusinessError):
    """上游 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """上游限流错误。本服务不做自动重试。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class StreamError(BusinessError):
    """流式读取过程中失败，cause 保存原始的传输层异常。"""

    def __init__(self, cause: BaseException, **extra):
        super().__init__(code="STREAM_FAILED", message=str(cause) or type(cause).__name__, http_status=502, **extra)
        self.cause = cause
