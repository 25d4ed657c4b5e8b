"""后端服务集成层。

该包下的模块负责：
- 定义后端调用的抽象接口 (base)。
- 提供基于 httpx 的具体实现 (backend_client)。
"""

from typing import Optional

from tutor_core.config.settings import settings
from tutor_core.providers.base import BackendClient
from tutor_core.providers.backend_client import HttpBackendClient


def create_backend(cfg: Optional[object] = None) -> BackendClient:
    """根据配置创建后端客户端，默认使用全局 settings。"""

    return HttpBackendClient(cfg or settings)
