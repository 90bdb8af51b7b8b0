"""模拟应急资源生成。"""

from .generator import RESOURCE_NAMES, RESOURCE_SERVICES, MockResourceGenerator

__all__ = ["MockResourceGenerator", "RESOURCE_NAMES", "RESOURCE_SERVICES"]
