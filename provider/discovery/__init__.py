# -*- coding: utf-8 -*-
"""
Provider Discovery 模块

功能：
- 抽象 AccountProvider 和 RegionProvider 接口
- 提供基于配置的静态实现
- 提供账号凭证（静态 AK/SK、AssumeRole、默认凭证链）
"""

from .interfaces import AccountProvider, RegionProvider
from .static_provider import StaticAccountProvider, StaticRegionProvider
from .credential_provider import (
    CredentialProvider,
    StaticCredentialProvider,
    AssumeRoleCredentialProvider,
    DefaultCredentialProvider,
    credential_provider_for,
)

__all__ = [
    'AccountProvider',
    'RegionProvider',
    'StaticAccountProvider',
    'StaticRegionProvider',
    'CredentialProvider',
    'StaticCredentialProvider',
    'AssumeRoleCredentialProvider',
    'DefaultCredentialProvider',
    'credential_provider_for',
]
