# -*- coding: utf-8 -*-
"""
Prometheus Collector 实现模块

功能：
- 定义每种资源的 current / limited gauge
- 统计 AWS API 调用次数和失败次数
- 保存最新一次成功写入的快照
- 提供指标数据供 /metrics 端点使用
"""

import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Tuple
from prometheus_client import Gauge, Counter, Histogram, CollectorRegistry, REGISTRY, generate_latest
from collector.quota_result import QuotaResult

logger = logging.getLogger(__name__)

# 资源类型
RESOURCE_BUCKETS = 's3Buckets'
RESOURCE_CERTIFICATES = 'acmCertificates'
RESOURCE_DISTRIBUTIONS = 'cloudfrontDistributions'
RESOURCE_ORIGIN_ACCESS_IDENTITIES = 'cloudfrontOAI'

RESOURCE_KINDS = (
    RESOURCE_BUCKETS,
    RESOURCE_CERTIFICATES,
    RESOURCE_DISTRIBUTIONS,
    RESOURCE_ORIGIN_ACCESS_IDENTITIES,
)

# resource -> (指标名前缀, 说明, labels)
RESOURCE_METRICS = {
    RESOURCE_BUCKETS: (
        'total_buckets_usage_per_region',
        'Total buckets usage per region',
        ['account', 'region'],
    ),
    RESOURCE_CERTIFICATES: (
        'total_certificates_usage_per_region',
        'Total certificates usage per region',
        ['account', 'region'],
    ),
    RESOURCE_DISTRIBUTIONS: (
        'total_cloudfront_distributions_usage',
        'Total cloudfront distributions usage',
        ['account'],
    ),
    RESOURCE_ORIGIN_ACCESS_IDENTITIES: (
        'total_cloudfront_origin_access_identifies_usage',
        'Total cloudfront origin access identifies usage',
        ['account'],
    ),
}

# 快照 key: (account, region, resource)，全局资源 region 为 None
SnapshotKey = Tuple[str, Optional[str], str]


class QuotaCollector:
    """
    配额收集器（快照发布者）

    功能：
    - 轮询任务把 (current, limit) 写入 gauge，后写覆盖先写
    - /metrics 读取时拿到的是最近一次写入的值
    - 失败的轮询不写入，上一次的值保持不变
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """
        初始化配额收集器

        Args:
            registry: Prometheus registry（测试时传入独立的 registry）
        """
        self.registry = registry

        # API 调用统计
        # 指标名是对外契约，使用 Gauge.inc() 避免 Counter 自动追加 _total 后缀
        self.api_call_total = Gauge(
            'total_aws_api_call_count',
            'Total aws api call count',
            ['api'],
            registry=registry
        )
        self.api_call_failed_total = Gauge(
            'total_aws_api_call_failed_count',
            'Total aws api call failed count',
            ['api'],
            registry=registry
        )

        # 每种资源两个 gauge：current 和 limited
        self._gauges: Dict[str, Tuple[Gauge, Gauge]] = {}
        self._label_names: Dict[str, List[str]] = {}
        for resource, (prefix, description, label_names) in RESOURCE_METRICS.items():
            current_gauge = Gauge(
                f'{prefix}_current',
                f'{description} current',
                label_names,
                registry=registry
            )
            limited_gauge = Gauge(
                f'{prefix}_limited',
                f'{description} limited',
                label_names,
                registry=registry
            )
            self._gauges[resource] = (current_gauge, limited_gauge)
            self._label_names[resource] = label_names

        # Exporter 自身指标
        self.poll_duration_seconds = Histogram(
            'quota_exporter_poll_duration_seconds',
            'Duration of one poll execution in seconds',
            ['resource'],
            buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
            registry=registry
        )
        self.poll_skipped_total = Counter(
            'quota_exporter_poll_skipped',
            'Number of scheduled ticks skipped because the previous execution was still running',
            ['account', 'resource'],
            registry=registry
        )

        # 最新快照：key -> (current, limit)
        self._snapshot: Dict[SnapshotKey, Tuple[float, float]] = {}

        # 每个 (account, resource) 最近一次轮询的结果
        self._last_results: Dict[Tuple[str, str], List[QuotaResult]] = {}

    @contextmanager
    def track_api_call(self, api: str):
        """
        统计一次 AWS API 调用

        进入时调用次数 +1，调用抛出异常时失败次数 +1 并继续抛出

        Args:
            api: API 操作名，如 'listBuckets'
        """
        self.api_call_total.labels(api=api).inc()
        try:
            yield
        except Exception:
            self.api_call_failed_total.labels(api=api).inc()
            raise

    def publish(self, resource: str, account: str, current: float, limit: float, region: Optional[str] = None):
        """
        写入一个维度的 (current, limit)

        Args:
            resource: 资源类型
            account: 账号标签
            current: 当前使用量（同一周期内完整聚合后的值）
            limit: 配额值
            region: 区域（全局资源不传）
        """
        current_gauge, limited_gauge = self._gauges[resource]
        labels = {'account': account}
        if 'region' in self._label_names[resource]:
            if region is None:
                raise ValueError(f"资源 {resource} 需要 region 标签")
            labels['region'] = region
        else:
            region = None

        current_gauge.labels(**labels).set(current)
        limited_gauge.labels(**labels).set(limit)

        self._snapshot[(account, region, resource)] = (float(current), float(limit))

    def record_results(self, account: str, resource: str, results: List[QuotaResult], duration: float = None):
        """
        记录一次轮询的结果

        Args:
            account: 账号标签
            resource: 资源类型
            results: 本次轮询的结果列表
            duration: 本次轮询耗时（秒）
        """
        self._last_results[(account, resource)] = list(results)
        if duration is not None:
            self.poll_duration_seconds.labels(resource=resource).observe(duration)

    def record_skipped_tick(self, account: str, resource: str):
        """记录一次因上次执行未结束而被跳过的调度"""
        self.poll_skipped_total.labels(account=account, resource=resource).inc()

    def get_snapshot(self) -> Dict[SnapshotKey, Tuple[float, float]]:
        """
        获取最新快照的副本

        Returns:
            {(account, region, resource): (current, limit)}
        """
        return self._snapshot.copy()

    def get_metrics(self) -> str:
        """
        获取 Prometheus 格式的指标数据

        Returns:
            Prometheus text format 字符串
        """
        return generate_latest(self.registry).decode('utf-8')

    def get_summary(self) -> Dict:
        """
        获取最近一轮采集的汇总信息

        Returns:
            汇总信息字典
        """
        last_results = list(self._last_results.items())

        success = 0
        skipped = 0
        failed = 0
        by_resource = {}
        for (_, resource), results in last_results:
            stats = by_resource.setdefault(resource, {'success': 0, 'skipped': 0, 'failed': 0})
            for result in results:
                if result.is_success():
                    success += 1
                    stats['success'] += 1
                elif result.is_skipped():
                    skipped += 1
                    stats['skipped'] += 1
                elif result.is_failed():
                    failed += 1
                    stats['failed'] += 1

        return {
            'total': success + skipped + failed,
            'success': success,
            'skipped': skipped,
            'failed': failed,
            'by_resource': by_resource,
            'snapshot_size': len(self._snapshot),
        }
