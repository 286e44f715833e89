# -*- coding: utf-8 -*-
"""
AWS Provider 主实现模块

功能：
- 每个账号一个 AWSProvider
- 持有账号当前一代客户端集合，定期整体替换以刷新凭证
- 每种资源一个轮询函数：统计使用量 -> 解析配额 -> 写入快照
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple
from botocore.exceptions import ClientError, BotoCoreError
from collector import (
    QuotaCollector,
    QuotaResult,
    QuotaStatus,
    RESOURCE_BUCKETS,
    RESOURCE_CERTIFICATES,
    RESOURCE_DISTRIBUTIONS,
    RESOURCE_ORIGIN_ACCESS_IDENTITIES,
)
from config.loader import AccountConfig
from provider.aws.client_set import AccountClientSet, build_client_set
from provider.aws.quota_resolver import (
    QuotaResolver,
    S3_BUCKETS_QUOTA,
    ACM_CERTIFICATES_QUOTA,
    CLOUDFRONT_DISTRIBUTIONS_QUOTA,
    CLOUDFRONT_OAI_QUOTA,
)
from provider.aws.usage_collector import (
    BucketUsageCollector,
    CertificateUsageCollector,
    DistributionUsageCollector,
    OriginAccessIdentityUsageCollector,
)
from provider.discovery.credential_provider import CredentialProvider

logger = logging.getLogger(__name__)


class AWSProvider:
    """
    单个账号的配额轮询器

    功能：
    - 统计 S3 桶、ACM 证书、CloudFront Distribution 和 OAI 的使用量
    - 通过 QuotaResolver 获取对应配额值
    - 把 (current, limit) 写入 QuotaCollector
    """

    def __init__(
        self,
        account: AccountConfig,
        regions: List[str],
        credential_provider: CredentialProvider,
        quota_collector: QuotaCollector,
        default_region: str = 'us-west-2',
        max_workers: int = 16,
        client_set_factory: Callable[..., AccountClientSet] = build_client_set
    ):
        """
        初始化 AWS Provider

        Args:
            account: 账号配置
            regions: region 白名单
            credential_provider: 凭证 Provider
            quota_collector: 快照发布者
            default_region: 全局 S3 客户端使用的 region
            max_workers: 桶 region 查询并发数
            client_set_factory: 客户端集合工厂（测试时替换）
        """
        self.account = account.name
        self.regions = list(regions)
        self.credential_provider = credential_provider
        self.quota_collector = quota_collector
        self.default_region = default_region
        self.client_set_factory = client_set_factory

        self._client_set: Optional[AccountClientSet] = None
        self._refresh_lock = threading.Lock()

        self.bucket_collector = BucketUsageCollector(quota_collector, max_workers=max_workers)
        self.certificate_collector = CertificateUsageCollector(quota_collector)
        self.distribution_collector = DistributionUsageCollector(quota_collector)
        self.oai_collector = OriginAccessIdentityUsageCollector(quota_collector)

        self.pollers: Dict[str, Callable[[], List[QuotaResult]]] = {
            RESOURCE_BUCKETS: self.check_buckets,
            RESOURCE_CERTIFICATES: self.check_certificates,
            RESOURCE_DISTRIBUTIONS: self.check_cloudfront_distributions,
            RESOURCE_ORIGIN_ACCESS_IDENTITIES: self.check_cloudfront_oai,
        }

    @property
    def client_set(self) -> AccountClientSet:
        """当前一代客户端集合"""
        if self._client_set is None:
            raise RuntimeError(f"账号 {self.account} 客户端集合未初始化")
        return self._client_set

    def initialize(self):
        """
        创建第一代客户端集合

        Raises:
            凭证或客户端创建失败时抛出异常（启动阶段视为致命错误）
        """
        self._client_set = self.client_set_factory(
            account=self.account,
            regions=self.regions,
            credential_provider=self.credential_provider,
            default_region=self.default_region,
            generation=1
        )

    def refresh_clients(self) -> bool:
        """
        创建新一代客户端集合并整体替换

        失败时保留旧的客户端集合。正在执行的轮询继续使用它们开始时拿到的集合。

        Returns:
            是否刷新成功
        """
        with self._refresh_lock:
            generation = self._client_set.generation + 1 if self._client_set else 1
            try:
                new_client_set = self.client_set_factory(
                    account=self.account,
                    regions=self.regions,
                    credential_provider=self.credential_provider,
                    default_region=self.default_region,
                    generation=generation
                )
            except Exception as e:
                logger.error(f"账号 {self.account} 刷新客户端集合失败，继续使用旧的客户端集合: {e}", exc_info=True)
                return False

            self._client_set = new_client_set
            logger.info(f"账号 {self.account} 客户端集合已刷新: generation={generation}")
            return True

    def poll(self, resource: str) -> List[QuotaResult]:
        """
        执行一次指定资源的轮询

        Args:
            resource: 资源类型

        Returns:
            本次轮询的结果列表
        """
        poll_func = self.pollers[resource]

        start_time = time.time()
        results = poll_func()
        duration = time.time() - start_time

        self.quota_collector.record_results(self.account, resource, results, duration=duration)

        success = sum(1 for r in results if r.is_success())
        failed = sum(1 for r in results if r.is_failed())
        logger.info(
            f"[轮询] 账号 {self.account} {resource} 完成: 成功={success}, 失败={failed}, 耗时={duration:.2f}s"
        )
        return results

    def check_buckets(self) -> List[QuotaResult]:
        """统计每个 region 的桶数量并写入快照"""
        client_set = self.client_set

        try:
            counts = self.bucket_collector.collect_usage(client_set)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"账号 {self.account} ListBuckets 失败，本周期放弃: {e}")
            return [self._failed(RESOURCE_BUCKETS, None, 'list_failed', e)]

        resolver = self._resolver(client_set)
        return [
            self._publish(resolver, RESOURCE_BUCKETS, S3_BUCKETS_QUOTA, region, counts.get(region, 0), region)
            for region in client_set.regions
        ]

    def check_certificates(self) -> List[QuotaResult]:
        """统计每个 region 的证书数量并写入快照"""
        client_set = self.client_set
        counts = self.certificate_collector.collect_usage(client_set)

        resolver = self._resolver(client_set)
        results = []
        for region in client_set.regions:
            if region not in counts:
                results.append(QuotaResult(
                    resource=RESOURCE_CERTIFICATES,
                    status=QuotaStatus.FAILED,
                    account=self.account,
                    region=region,
                    reason='list_failed'
                ))
                continue
            results.append(self._publish(
                resolver, RESOURCE_CERTIFICATES, ACM_CERTIFICATES_QUOTA, region, counts[region], region
            ))
        return results

    def check_cloudfront_distributions(self) -> List[QuotaResult]:
        """统计 CloudFront Distribution 数量并写入快照"""
        return self._check_global(
            RESOURCE_DISTRIBUTIONS, self.distribution_collector, CLOUDFRONT_DISTRIBUTIONS_QUOTA
        )

    def check_cloudfront_oai(self) -> List[QuotaResult]:
        """统计 CloudFront Origin Access Identity 数量并写入快照"""
        return self._check_global(
            RESOURCE_ORIGIN_ACCESS_IDENTITIES, self.oai_collector, CLOUDFRONT_OAI_QUOTA
        )

    def _check_global(self, resource: str, usage_collector, quota: Tuple[str, str]) -> List[QuotaResult]:
        client_set = self.client_set

        try:
            current = usage_collector.collect_usage(client_set)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"账号 {self.account} 列出 {resource} 失败，本周期放弃: {e}")
            return [self._failed(resource, None, 'list_failed', e)]

        # 全局服务的配额只能在 quota home region 查询
        resolver = self._resolver(client_set)
        return [self._publish(resolver, resource, quota, client_set.quota_home_region, current, None)]

    def _resolver(self, client_set: AccountClientSet) -> QuotaResolver:
        return QuotaResolver(client_set.service_quotas, self.quota_collector)

    def _publish(
        self,
        resolver: QuotaResolver,
        resource: str,
        quota: Tuple[str, str],
        quota_region: str,
        current: int,
        label_region: Optional[str]
    ) -> QuotaResult:
        """
        解析配额并写入 (current, limit)

        配额解析失败时两个 gauge 都不写入，保留上一次的值
        """
        service_code, quota_code = quota
        try:
            quota_value = resolver.resolve(service_code, quota_code, quota_region)
        except (ClientError, BotoCoreError, ValueError) as e:
            logger.error(
                f"账号 {self.account} 获取配额失败: {service_code}/{quota_code}, region={quota_region}, error={e}"
            )
            return self._failed(resource, label_region, 'quota_lookup_failed', e)

        self.quota_collector.publish(resource, self.account, current, quota_value.value, region=label_region)

        return QuotaResult(
            resource=resource,
            status=QuotaStatus.SUCCESS,
            account=self.account,
            region=label_region,
            current=float(current),
            limit=quota_value.value,
            limit_source=quota_value.source
        )

    def _failed(self, resource: str, region: Optional[str], reason: str, error: Exception) -> QuotaResult:
        return QuotaResult(
            resource=resource,
            status=QuotaStatus.FAILED,
            account=self.account,
            region=region,
            reason=reason,
            error=str(error)
        )
