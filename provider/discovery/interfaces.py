# -*- coding: utf-8 -*-
"""
账号 / 区域来源接口

main 只通过这两个接口拿到要轮询的账号和 region 白名单。
"""

from abc import ABC, abstractmethod
from typing import List
from config.loader import AccountConfig


class AccountProvider(ABC):
    """账号来源（账号列表在进程生命周期内固定）"""

    @abstractmethod
    def get_accounts(self) -> List[AccountConfig]:
        pass

    def get_provider_type(self) -> str:
        return self.__class__.__name__


class RegionProvider(ABC):
    """region 白名单来源，可以按账号返回不同的列表"""

    @abstractmethod
    def get_regions(self, account: str = None) -> List[str]:
        """
        Args:
            account: 账号标签（静态实现忽略该参数）

        Returns:
            region 列表，顺序即配置中的顺序
        """
        pass

    def get_provider_type(self) -> str:
        return self.__class__.__name__
