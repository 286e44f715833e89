# -*- coding: utf-8 -*-
"""
配置验证模块

功能：
- 验证配置的完整性和正确性
- 检查必填字段
- 验证字段格式和取值范围
"""

from typing import Optional, Tuple

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'WARN', 'ERROR', 'CRITICAL']


def validate_config(config) -> Tuple[bool, Optional[str]]:
    """
    验证配置对象

    Args:
        config: ExporterConfig 对象

    Returns:
        (is_valid, error_message) 元组
    """
    service = config.service

    if service.interval <= 0:
        return False, "service.interval 必须是正整数（分钟）"

    if service.credential_refresh_interval <= 0:
        return False, "service.credential_refresh_interval 必须是正整数（分钟）"

    if not 1 <= service.port <= 65535:
        return False, f"service.port 超出范围（1-65535）: {service.port}"

    if service.max_workers <= 0:
        return False, "service.max_workers 必须是正整数"

    if service.log_level.upper() not in VALID_LOG_LEVELS:
        return False, f"service.log_level 必须是以下值之一: {', '.join(VALID_LOG_LEVELS)}"

    if not config.regions:
        return False, "regions 列表不能为空"

    if any(not region for region in config.regions):
        return False, "regions 中不能有空字符串"

    if len(set(config.regions)) != len(config.regions):
        return False, "regions 中存在重复的 region"

    if not config.accounts:
        return False, "至少需要配置一个账号"

    names = [account.name for account in config.accounts]
    if len(set(names)) != len(names):
        return False, "账号名称（name）必须唯一"

    for account in config.accounts:
        has_key = bool(account.access_key)
        has_secret = bool(account.secret_key)
        if has_key != has_secret:
            return False, f"账号 {account.name}: access_key 和 secret_key 必须同时配置"
        if has_key and account.role_arn:
            return False, f"账号 {account.name}: access_key/secret_key 与 role_arn 不能同时配置"

    return True, None
