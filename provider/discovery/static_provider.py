# -*- coding: utf-8 -*-
"""
Static Provider 实现

功能：
- 从 exporter 配置读取账号列表和 region 白名单
"""

import logging
from typing import List
from config.loader import AccountConfig
from .interfaces import AccountProvider, RegionProvider

logger = logging.getLogger(__name__)


class StaticAccountProvider(AccountProvider):
    """静态账号 Provider（账号来自配置文件或命令行）"""

    def __init__(self, accounts: List[AccountConfig]):
        self._accounts = list(accounts)
        logger.info(f"初始化 Static Account Provider，账号数量: {len(self._accounts)}")

    def get_accounts(self) -> List[AccountConfig]:
        return list(self._accounts)

    def get_provider_type(self) -> str:
        return "static"


class StaticRegionProvider(RegionProvider):
    """静态区域 Provider（所有账号共用同一份 region 白名单）"""

    def __init__(self, regions: List[str]):
        self._regions = list(regions)

    def get_regions(self, account: str = None) -> List[str]:
        return list(self._regions)

    def get_provider_type(self) -> str:
        return "static"
