"""灾害预警与气候韧性服务。"""

__version__ = "0.1.0"
