# -*- coding: utf-8 -*-
"""
Exporter 配置加载模块

功能：
- 从 YAML 文件加载 exporter 配置（轮询间隔、端口、账号、region 列表）
- 定义清晰的数据结构（ExporterConfig / ServiceConfig / AccountConfig）
- 兼容旧格式 info.account / info.key / info.secret 并行列表
- 读取失败时给出明确错误
"""

import yaml
import os
from typing import List, Optional
from dataclasses import dataclass, field

# 默认监控的 region 列表
# 未启用的 region（af-south-1、ap-east-1、ap-southeast-3、eu-south-1、me-south-1、us-gov-*）不在列表中
DEFAULT_REGIONS = [
    'ap-northeast-1',
    'ap-northeast-2',
    'ap-northeast-3',
    'ap-south-1',
    'ap-southeast-1',
    'ap-southeast-2',
    'ca-central-1',
    'eu-central-1',
    'eu-north-1',
    'eu-west-1',
    'eu-west-2',
    'eu-west-3',
    'sa-east-1',
    'us-east-1',
    'us-east-2',
    'us-west-1',
    'us-west-2',
]

# 全局服务（CloudFront）的配额只能在该 region 查询
QUOTA_HOME_REGION = 'us-east-1'

# QUOTA_HOME_REGION 不在列表中时使用的下标
QUOTA_HOME_FALLBACK_INDEX = 13

DEFAULT_ACCOUNT_NAME = 'default'


@dataclass
class AccountConfig:
    """单个账号的配置"""
    name: str                        # account 标签值
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    role_arn: Optional[str] = None   # 使用 AssumeRole 时的角色 ARN


@dataclass
class ServiceConfig:
    """服务运行参数"""
    interval: int = 5                        # 轮询间隔（分钟）
    port: int = 2112                         # 监听端口
    credential_refresh_interval: int = 59    # 凭证刷新间隔（分钟）
    allow_overlap: bool = False              # 是否允许同一 (account, resource) 的轮询重叠执行
    max_workers: int = 16                    # 桶 region 查询并发数
    default_region: str = 'us-west-2'        # 全局 S3 客户端使用的 region
    log_level: str = 'INFO'


@dataclass
class ExporterConfig:
    """Exporter 配置的根数据结构"""
    service: ServiceConfig = field(default_factory=ServiceConfig)
    regions: List[str] = field(default_factory=lambda: list(DEFAULT_REGIONS))
    accounts: List[AccountConfig] = field(default_factory=list)


def find_quota_home_region(regions: List[str]) -> str:
    """
    查找 quota home region

    Args:
        regions: region 列表

    Returns:
        us-east-1（在列表中时），否则返回固定下标处的 region
    """
    for region in regions:
        if region == QUOTA_HOME_REGION:
            return region
    if not regions:
        raise ValueError("region 列表为空")
    return regions[min(QUOTA_HOME_FALLBACK_INDEX, len(regions) - 1)]


def account_name_from_role_arn(role_arn: str) -> str:
    """
    从角色 ARN 中解析账号 ID（arn:aws:iam::123456789012:role/name）

    Args:
        role_arn: 角色 ARN

    Returns:
        账号 ID，解析失败时返回 DEFAULT_ACCOUNT_NAME
    """
    parts = role_arn.split(':')
    if len(parts) >= 6 and parts[4]:
        return parts[4]
    return DEFAULT_ACCOUNT_NAME


def load_exporter_config(config_path: Optional[str] = None) -> ExporterConfig:
    """
    从 YAML 文件加载 exporter 配置

    Args:
        config_path: 配置文件路径；为 None 时返回默认配置

    Returns:
        ExporterConfig 对象

    Raises:
        FileNotFoundError: 文件不存在
        yaml.YAMLError: YAML 解析错误
        ValueError: 配置格式错误
    """
    if config_path is None:
        return ExporterConfig()

    # 检查文件是否存在
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"配置文件不存在: {config_path}")

    # 读取文件内容
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            content = f.read()
    except IOError as e:
        raise IOError(f"无法读取配置文件 {config_path}: {e}")

    # 解析 YAML
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"YAML 解析失败: {e}")

    if data is None:
        return ExporterConfig()

    if not isinstance(data, dict):
        raise ValueError("配置格式错误: 顶层必须是字典类型")

    return parse_exporter_config(data)


def parse_exporter_config(data: dict) -> ExporterConfig:
    """
    把 YAML 解析后的字典转换为 ExporterConfig

    Args:
        data: 配置字典

    Returns:
        ExporterConfig 对象

    Raises:
        ValueError: 配置格式错误
    """
    service = _parse_service_config(data.get('service') or {})

    regions = data.get('regions')
    if regions is None:
        regions = list(DEFAULT_REGIONS)
    elif not isinstance(regions, list) or not all(isinstance(r, str) for r in regions):
        raise ValueError("配置格式错误: 'regions' 必须是字符串列表")
    else:
        regions = [r.strip() for r in regions]

    accounts = []
    if 'accounts' in data and data['accounts'] is not None:
        accounts_data = data['accounts']
        if not isinstance(accounts_data, list):
            raise ValueError("配置格式错误: 'accounts' 必须是列表类型")
        for idx, account_dict in enumerate(accounts_data):
            try:
                accounts.append(_parse_account(account_dict))
            except (KeyError, ValueError) as e:
                raise ValueError(f"配置格式错误: 'accounts[{idx}]': {e}")

    if 'info' in data and data['info'] is not None:
        accounts.extend(_parse_legacy_info(data['info']))

    return ExporterConfig(service=service, regions=regions, accounts=accounts)


def _parse_service_config(service_dict: dict) -> ServiceConfig:
    """解析 service 段"""
    if not isinstance(service_dict, dict):
        raise ValueError("配置格式错误: 'service' 必须是字典类型")

    defaults = ServiceConfig()
    int_fields = ['interval', 'port', 'credential_refresh_interval', 'max_workers']
    values = {}
    for name in int_fields:
        value = service_dict.get(name, getattr(defaults, name))
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"配置格式错误: 'service.{name}' 必须是整数")
        values[name] = value

    allow_overlap = service_dict.get('allow_overlap', defaults.allow_overlap)
    if not isinstance(allow_overlap, bool):
        raise ValueError("配置格式错误: 'service.allow_overlap' 必须是布尔值")

    default_region = service_dict.get('default_region', defaults.default_region)
    if not isinstance(default_region, str) or not default_region.strip():
        raise ValueError("配置格式错误: 'service.default_region' 必须是非空字符串")

    log_level = service_dict.get('log_level', defaults.log_level)
    if not isinstance(log_level, str):
        raise ValueError("配置格式错误: 'service.log_level' 必须是字符串")

    return ServiceConfig(
        allow_overlap=allow_overlap,
        default_region=default_region.strip(),
        log_level=log_level.upper(),
        **values
    )


def _parse_account(account_dict: dict) -> AccountConfig:
    """
    解析单个账号

    Raises:
        KeyError: 缺少必填字段
        ValueError: 字段值无效
    """
    if not isinstance(account_dict, dict):
        raise ValueError("账号配置必须是字典类型")

    if 'name' not in account_dict:
        raise KeyError("缺少必填字段: name")

    name = account_dict['name']
    if not isinstance(name, str) or not name.strip():
        raise ValueError("name 必须是非空字符串")

    for optional_field in ['access_key', 'secret_key', 'role_arn']:
        value = account_dict.get(optional_field)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{optional_field} 必须是字符串")

    return AccountConfig(
        name=name.strip(),
        access_key=account_dict.get('access_key'),
        secret_key=account_dict.get('secret_key'),
        role_arn=account_dict.get('role_arn'),
    )


def _parse_legacy_info(info: dict) -> List[AccountConfig]:
    """
    解析旧格式的并行列表：info.account / info.key / info.secret

    Raises:
        ValueError: 列表长度不一致或类型错误
    """
    if not isinstance(info, dict):
        raise ValueError("配置格式错误: 'info' 必须是字典类型")

    names = info.get('account') or []
    keys = info.get('key') or []
    secrets = info.get('secret') or []

    for field_name, values in (('account', names), ('key', keys), ('secret', secrets)):
        if not isinstance(values, list):
            raise ValueError(f"配置格式错误: 'info.{field_name}' 必须是列表类型")

    if not (len(names) == len(keys) == len(secrets)):
        raise ValueError("配置格式错误: 'info.account'、'info.key'、'info.secret' 长度必须一致")

    return [
        AccountConfig(name=str(name), access_key=str(key), secret_key=str(secret))
        for name, key, secret in zip(names, keys, secrets)
    ]
