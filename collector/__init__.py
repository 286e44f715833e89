# -*- coding: utf-8 -*-
"""
Prometheus Collector 模块

功能：
- 定义 current / limited gauge 和 API 调用计数
- 保存最新快照
- 暴露 Prometheus 格式的指标
"""

from .collector import (
    QuotaCollector,
    RESOURCE_BUCKETS,
    RESOURCE_CERTIFICATES,
    RESOURCE_DISTRIBUTIONS,
    RESOURCE_ORIGIN_ACCESS_IDENTITIES,
    RESOURCE_KINDS,
)
from .quota_result import QuotaResult, QuotaStatus
