"""错误分类：请求校验错误、上游依赖错误、定位错误。"""

from __future__ import annotations


class RequestValidationError(ValueError):
    """请求参数不合法（坐标越界、枚举值无效、半径越界等），映射为 400。"""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UpstreamServiceError(RuntimeError):
    """第三方服务（天气/地震/地理编码）不可达或返回非 2xx，映射为 500。"""

    def __init__(self, message: str, *, provider: str, info: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.info = info


class GeolocationError(RuntimeError):
    """设备定位失败或超时；调用方必须显式处理，不会回退到默认位置。"""

    def __init__(self, message: str, *, reason: str = "unavailable") -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
