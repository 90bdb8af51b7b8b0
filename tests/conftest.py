from __future__ import annotations

import asyncio
import inspect
import os
import sys
from pathlib import Path
from typing import Optional

import pytest

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, os.fspath(ROOT / "src"))


# 配置pytest-anyio只使用asyncio后端（避免trio依赖）
@pytest.fixture(scope="session")
def anyio_backend():
    """配置pytest-anyio只使用asyncio后端"""
    return "asyncio"


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> Optional[bool]:
    """异步测试执行钩子（避免与 pytest-anyio 冲突）。

    若用例标注了 anyio/asyncio 等异步标记，则交由对应插件管理事件循环；
    仅在无任何异步插件接管时，才启用手动事件循环。
    """

    function = pyfuncitem.obj
    if not asyncio.iscoroutinefunction(function):
        return None

    # 交给 pytest-anyio / pytest-asyncio 管理
    if "anyio" in pyfuncitem.keywords or "asyncio" in pyfuncitem.keywords:
        return None

    signature = inspect.signature(function)
    accepted = {
        name: value
        for name, value in pyfuncitem.funcargs.items()
        if name in signature.parameters
    }

    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(function(**accepted))
    finally:
        loop.close()
    return True

