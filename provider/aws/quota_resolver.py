# -*- coding: utf-8 -*-
"""
配额值解析模块

功能：
- 两级回退获取配额值：
  1. 已批准（CASE_CLOSED）的配额变更请求，取 API 返回顺序中的最后一条
  2. 否则取 AWS 默认配额
- 个别 region 不支持配额查询，直接返回固定值
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Tuple
from provider.aws.service_quotas import ServiceQuotasClient

logger = logging.getLogger(__name__)

# 配额来源
SOURCE_REQUESTED = 'requested'
SOURCE_DEFAULT = 'default'
SOURCE_FIXED = 'fixed'

# 服务代码和配额代码
S3_BUCKETS_QUOTA = ('s3', 'L-DC2B2D3D')
ACM_CERTIFICATES_QUOTA = ('acm', 'L-F141DD1D')
CLOUDFRONT_DISTRIBUTIONS_QUOTA = ('cloudfront', 'L-24B04930')
CLOUDFRONT_OAI_QUOTA = ('cloudfront', 'L-08884E5C')

# (service_code, quota_code, region) -> 固定配额值
# eu-north-1 不支持查询 ACM 证书配额
FIXED_QUOTA_VALUES: Dict[Tuple[str, str, str], float] = {
    ('acm', 'L-F141DD1D', 'eu-north-1'): 2500.0,
}


@dataclass(frozen=True)
class QuotaValue:
    """配额值及其来源"""
    value: float
    source: str


class QuotaResolver:
    """
    配额值解析器

    每个客户端集合对应一个解析器，按 region 选择 Service Quotas 客户端。
    任一步 API 调用失败都会抛出异常，由调用方放弃该 (region, quota) 本周期的写入。
    """

    def __init__(self, clients: Mapping[str, ServiceQuotasClient], api_tracker,
                 fixed_values: Dict[Tuple[str, str, str], float] = None):
        """
        初始化配额解析器

        Args:
            clients: region -> ServiceQuotasClient
            api_tracker: 提供 track_api_call(api) 的对象（QuotaCollector）
            fixed_values: 固定配额值表（默认 FIXED_QUOTA_VALUES）
        """
        self.clients = clients
        self.api_tracker = api_tracker
        self.fixed_values = FIXED_QUOTA_VALUES if fixed_values is None else fixed_values

    def resolve(self, service_code: str, quota_code: str, region: str) -> QuotaValue:
        """
        获取 (service_code, quota_code, region) 的配额值

        Args:
            service_code: 服务代码
            quota_code: 配额代码
            region: 查询配额使用的 region（全局服务传 quota home region）

        Returns:
            QuotaValue

        Raises:
            KeyError: 该 region 没有 Service Quotas 客户端
            ClientError / BotoCoreError: API 调用失败
            ValueError: 返回的配额值缺失或不是数字
        """
        fixed_value = self.fixed_values.get((service_code, quota_code, region))
        if fixed_value is not None:
            logger.debug(f"{region} 使用固定配额值: {service_code}/{quota_code} = {fixed_value}")
            return QuotaValue(value=float(fixed_value), source=SOURCE_FIXED)

        client = self.clients[region]

        with self.api_tracker.track_api_call('listQuotasHistory'):
            requested_quotas = client.list_requested_quota_changes(service_code, quota_code)

        if requested_quotas:
            # 以 API 返回顺序的最后一条为准，不按时间重新排序
            latest = requested_quotas[-1]
            desired_value = _quota_number(latest.get('DesiredValue'), 'DesiredValue')
            logger.debug(
                f"使用已批准的配额变更: {service_code}/{quota_code} = {desired_value} "
                f"(region: {region}, 共 {len(requested_quotas)} 条)"
            )
            return QuotaValue(value=desired_value, source=SOURCE_REQUESTED)

        with self.api_tracker.track_api_call('getQuotasDefault'):
            default_quota = client.get_default_service_quota(service_code, quota_code)

        default_value = _quota_number(default_quota.get('value'), 'default value')
        logger.debug(f"使用默认配额: {service_code}/{quota_code} = {default_value} (region: {region})")
        return QuotaValue(value=default_value, source=SOURCE_DEFAULT)


def _quota_number(raw, field_name: str) -> float:
    """把 API 返回的配额值转换为 float，缺失或非数字时抛出 ValueError"""
    if raw is None:
        raise ValueError(f"配额值缺失: {field_name}")
    try:
        return float(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"配额值不是数字: {field_name}={raw!r}") from e
