# -*- coding: utf-8 -*-
"""
配额采集结果数据结构

功能：
- 定义一次轮询中每个 (account, region, resource) 的结果状态
- 供日志汇总和 /health 使用
"""

from dataclasses import dataclass
from typing import Optional
from enum import Enum


class QuotaStatus(Enum):
    """配额采集状态"""
    SUCCESS = "success"    # current 和 limit 均已写入 gauge
    SKIPPED = "skipped"    # 跳过采集（有明确原因）
    FAILED = "failed"      # 采集失败，上一次发布的值保持不变


@dataclass
class QuotaResult:
    """单个维度的配额采集结果"""
    resource: str                    # 资源类型，如 "s3Buckets"
    status: QuotaStatus              # 采集状态
    account: str = "default"         # 账号标签
    region: Optional[str] = None     # 区域（CloudFront 等全局资源为 None）
    current: Optional[float] = None  # 当前使用量（success 时）
    limit: Optional[float] = None    # 配额值（success 时）
    limit_source: Optional[str] = None  # 配额来源：requested / default / fixed
    reason: Optional[str] = None     # 状态原因（skipped 或 failed 时必须有）
    error: Optional[str] = None      # 错误信息（failed 时）

    def is_success(self) -> bool:
        """判断是否成功"""
        return self.status == QuotaStatus.SUCCESS

    def is_skipped(self) -> bool:
        """判断是否跳过"""
        return self.status == QuotaStatus.SKIPPED

    def is_failed(self) -> bool:
        """判断是否失败"""
        return self.status == QuotaStatus.FAILED
