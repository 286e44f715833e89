# -*- coding: utf-8 -*-
"""
账号客户端集合模块

功能：
- 为一个账号创建全部 API 客户端（S3、CloudFront、每个 region 的 ACM 和 Service Quotas）
- 客户端集合不可变，凭证刷新时整体替换
"""

import logging
import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Tuple
from api.aws.acm import ACMClient
from api.aws.cloudfront import CloudFrontClient
from api.aws.s3 import S3Client
from config.loader import find_quota_home_region
from provider.aws.service_quotas import ServiceQuotasClient
from provider.discovery.credential_provider import CredentialProvider

logger = logging.getLogger(__name__)

# CloudFront 是全局服务，固定使用 us-east-1
CLOUDFRONT_REGION = 'us-east-1'


@dataclass(frozen=True)
class AccountClientSet:
    """
    单个账号的一代客户端集合

    正在执行的轮询持有创建时的集合引用，刷新不会影响它们
    """
    account: str
    regions: Tuple[str, ...]
    quota_home_region: str
    s3: S3Client
    cloudfront: CloudFrontClient
    acm: Mapping[str, ACMClient]
    service_quotas: Mapping[str, ServiceQuotasClient]
    generation: int = 1
    created_at: float = field(default_factory=time.time)


def build_client_set(
    account: str,
    regions: List[str],
    credential_provider: CredentialProvider,
    default_region: str = 'us-west-2',
    generation: int = 1
) -> AccountClientSet:
    """
    创建账号的客户端集合

    Args:
        account: 账号标签
        regions: region 白名单
        credential_provider: 凭证 Provider
        default_region: 全局 S3 客户端使用的 region
        generation: 客户端集合的代数（每次刷新 +1）

    Returns:
        AccountClientSet

    Raises:
        凭证或客户端创建失败时抛出异常
    """
    session = credential_provider.create_session()
    quota_home_region = find_quota_home_region(regions)

    acm_clients = {}
    service_quotas_clients = {}
    for region in regions:
        acm_clients[region] = ACMClient(region=region, session=session)
        service_quotas_clients[region] = ServiceQuotasClient(region=region, session=session)

    client_set = AccountClientSet(
        account=account,
        regions=tuple(regions),
        quota_home_region=quota_home_region,
        s3=S3Client(region=default_region, session=session),
        cloudfront=CloudFrontClient(region=CLOUDFRONT_REGION, session=session),
        acm=MappingProxyType(acm_clients),
        service_quotas=MappingProxyType(service_quotas_clients),
        generation=generation,
    )

    logger.info(
        f"账号 {account} 客户端集合创建完成: generation={generation}, "
        f"regions={len(regions)}, quota_home_region={quota_home_region}, "
        f"credential={credential_provider.get_provider_type()}"
    )
    return client_set
