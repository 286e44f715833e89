# -*- coding: utf-8 -*-
"""
Usage Collector 接口和实现

功能：
- 定义 UsageCollector 接口（每种资源一个）
- S3：列出所有桶，再并发查询每个桶的 region，按 region 聚合
- ACM：每个 region 列出证书
- CloudFront：全局列出 Distribution 和 Origin Access Identity
"""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, Iterable
from botocore.exceptions import ClientError, BotoCoreError
from provider.aws.client_set import AccountClientSet

logger = logging.getLogger(__name__)


class RegionCounter:
    """
    单次轮询内的 region -> 数量 计数表

    每次轮询新建一个，轮询结束即丢弃。
    所有 region 初始为 0，0 是合法的最终值。
    """

    def __init__(self, regions: Iterable[str]):
        self._counts: Dict[str, int] = {region: 0 for region in regions}
        self._lock = threading.Lock()

    def increment(self, region: str):
        """region 计数 +1（互斥）"""
        with self._lock:
            self._counts[region] = self._counts.get(region, 0) + 1

    def as_dict(self) -> Dict[str, int]:
        """返回计数表的副本"""
        with self._lock:
            return dict(self._counts)


class UsageCollector(ABC):
    """
    Usage Collector 接口

    每种资源一个 UsageCollector，API 调用通过 api_tracker 统计
    """

    def __init__(self, api_tracker):
        """
        Args:
            api_tracker: 提供 track_api_call(api) 的对象（QuotaCollector）
        """
        self.api_tracker = api_tracker

    @abstractmethod
    def collect_usage(self, client_set: AccountClientSet):
        """
        收集资源使用量

        Args:
            client_set: 本次轮询使用的客户端集合
        """
        pass


class BucketUsageCollector(UsageCollector):
    """
    S3 桶数量（按 region）

    ListBuckets 是全局调用，桶的 region 需要对每个桶调用 GetBucketLocation。
    所有查询完成后才返回聚合结果。
    """

    def __init__(self, api_tracker, max_workers: int = 16):
        """
        Args:
            api_tracker: API 调用统计对象
            max_workers: GetBucketLocation 并发线程数
        """
        super().__init__(api_tracker)
        self.max_workers = max_workers

    def collect_usage(self, client_set: AccountClientSet) -> Dict[str, int]:
        """
        统计每个 region 的桶数量

        Returns:
            {region: count}，包含所有白名单 region（没有桶为 0），
            以及白名单外但有桶的 region

        Raises:
            ClientError / BotoCoreError: ListBuckets 失败，本周期放弃
        """
        with self.api_tracker.track_api_call('listBuckets'):
            buckets = client_set.s3.list_buckets()

        counter = RegionCounter(client_set.regions)
        if not buckets:
            return counter.as_dict()

        workers = min(self.max_workers, len(buckets))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"bucket-location-{client_set.account}") as executor:
            futures = [
                executor.submit(self._resolve_bucket, client_set, bucket['Name'], counter)
                for bucket in buckets
            ]
            # 等待所有桶的查询结束
            wait(futures)

        counts = counter.as_dict()
        logger.info(f"账号 {client_set.account} S3 桶统计完成: 共 {len(buckets)} 个桶, 成功 {sum(counts.values())} 个")
        return counts

    def _resolve_bucket(self, client_set: AccountClientSet, bucket_name: str, counter: RegionCounter):
        """查询单个桶的 region 并计数，失败时跳过该桶"""
        try:
            with self.api_tracker.track_api_call('getLocation'):
                region = client_set.s3.get_bucket_location(bucket_name)
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"账号 {client_set.account} 查询桶 {bucket_name} 的 region 失败: {e}")
            return
        except Exception as e:
            logger.error(f"账号 {client_set.account} 查询桶 {bucket_name} 的 region 时发生未知错误: {e}", exc_info=True)
            return

        counter.increment(region)


class CertificateUsageCollector(UsageCollector):
    """ACM 证书数量（按 region，API 本身按 region 划分）"""

    def collect_usage(self, client_set: AccountClientSet) -> Dict[str, int]:
        """
        统计每个 region 的证书数量

        Returns:
            {region: count}，列出失败的 region 不包含在结果中
        """
        counts = {}
        for region in client_set.regions:
            client = client_set.acm[region]
            try:
                with self.api_tracker.track_api_call('ListCertificates'):
                    certificates = client.list_certificates()
            except (ClientError, BotoCoreError) as e:
                logger.error(f"账号 {client_set.account} 列出 {region} 的证书失败: {e}")
                continue

            counts[region] = len(certificates)

        return counts


class DistributionUsageCollector(UsageCollector):
    """CloudFront Distribution 数量（全局）"""

    def collect_usage(self, client_set: AccountClientSet) -> int:
        """
        Returns:
            Distribution 数量

        Raises:
            ClientError / BotoCoreError: ListDistributions 失败
        """
        with self.api_tracker.track_api_call('listDistributions'):
            distributions = client_set.cloudfront.list_distributions()
        return len(distributions)


class OriginAccessIdentityUsageCollector(UsageCollector):
    """CloudFront Origin Access Identity 数量（全局）"""

    def collect_usage(self, client_set: AccountClientSet) -> int:
        """
        Returns:
            OAI 数量

        Raises:
            ClientError / BotoCoreError: ListCloudFrontOriginAccessIdentities 失败
        """
        with self.api_tracker.track_api_call('listOAI'):
            identities = client_set.cloudfront.list_origin_access_identities()
        return len(identities)
