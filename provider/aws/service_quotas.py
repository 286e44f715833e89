# -*- coding: utf-8 -*-
"""
AWS Service Quotas API 客户端模块

功能：
- 封装 AWS Service Quotas API 调用
- 查询已批准的配额变更请求（change history）
- 查询服务的默认配额值
"""

import boto3
import logging
from botocore.exceptions import ClientError, BotoCoreError
from typing import Dict, List

logger = logging.getLogger(__name__)

# 已关闭（已批准）的配额变更请求状态
APPROVED_REQUEST_STATUS = 'CASE_CLOSED'


class ServiceQuotasClient:
    """
    AWS Service Quotas API 客户端

    功能：
    - 调用 ListRequestedServiceQuotaChangeHistoryByQuota 获取变更历史
    - 调用 GetAWSDefaultServiceQuota 获取默认配额
    """

    def __init__(self, region: str = 'us-east-1', session: boto3.Session = None):
        """
        初始化 Service Quotas 客户端

        Args:
            region: AWS 区域（默认 us-east-1）
            session: boto3 Session（可选，不提供则使用默认凭证链）
        """
        self.region = region
        try:
            if session is not None:
                self.client = session.client('service-quotas', region_name=region)
                logger.debug(f"Service Quotas 客户端初始化成功（使用指定 Session），区域: {region}")
            else:
                # 使用默认凭证链（环境变量、配置文件、IAM 角色等）
                self.client = boto3.client('service-quotas', region_name=region)
                logger.debug(f"Service Quotas 客户端初始化成功（使用默认凭证链），区域: {region}")
        except Exception as e:
            logger.error(f"初始化 Service Quotas 客户端失败: {e}")
            raise

    def list_requested_quota_changes(
        self,
        service_code: str,
        quota_code: str,
        status: str = APPROVED_REQUEST_STATUS
    ) -> List[Dict]:
        """
        列出某个配额的变更请求历史

        结果保持 API 的返回顺序（跨分页拼接），调用方把最后一条视为最新

        Args:
            service_code: 服务代码（如 's3'）
            quota_code: 配额代码（如 'L-DC2B2D3D'）
            status: 请求状态过滤条件（默认 CASE_CLOSED）

        Returns:
            RequestedQuotas 列表
        """
        try:
            logger.debug(
                f"调用 ListRequestedServiceQuotaChangeHistoryByQuota: service_code={service_code}, "
                f"quota_code={quota_code}, status={status}, region={self.region}"
            )

            requested_quotas = []
            paginator = self.client.get_paginator('list_requested_service_quota_change_history_by_quota')
            for page in paginator.paginate(ServiceCode=service_code, QuotaCode=quota_code, Status=status):
                requested_quotas.extend(page.get('RequestedQuotas', []))

            logger.debug(f"变更历史查询完成: {quota_code} 共 {len(requested_quotas)} 条 (region: {self.region})")
            return requested_quotas

        except ClientError as e:
            self._log_client_error('ListRequestedServiceQuotaChangeHistoryByQuota', service_code, quota_code, e)
            raise
        except BotoCoreError as e:
            logger.error(f"AWS SDK 错误: service_code={service_code}, quota_code={quota_code}, region={self.region}, error={e}")
            raise

    def get_default_service_quota(self, service_code: str, quota_code: str) -> Dict:
        """
        获取配额的 AWS 默认值

        Args:
            service_code: 服务代码
            quota_code: 配额代码

        Returns:
            配额详情字典，包含：
            - quota_code: 配额代码
            - quota_name: 配额名称
            - value: 默认配额值
            - unit: 单位

        Raises:
            ValueError: 响应中没有配额值
        """
        try:
            logger.debug(f"调用 GetAWSDefaultServiceQuota: service_code={service_code}, quota_code={quota_code}, region={self.region}")

            response = self.client.get_aws_default_service_quota(
                ServiceCode=service_code,
                QuotaCode=quota_code
            )

            quota = response.get('Quota', {})
            if quota.get('Value') is None:
                raise ValueError(f"GetAWSDefaultServiceQuota 未返回配额值: {service_code}/{quota_code} (region: {self.region})")

            result = {
                'quota_code': quota.get('QuotaCode', quota_code),
                'quota_name': quota.get('QuotaName', ''),
                'value': quota['Value'],
                'unit': quota.get('Unit', ''),
            }

            logger.debug(f"获取默认配额成功: {quota_code} = {result['value']} {result['unit']}")
            return result

        except ClientError as e:
            self._log_client_error('GetAWSDefaultServiceQuota', service_code, quota_code, e)
            raise
        except BotoCoreError as e:
            logger.error(f"AWS SDK 错误: service_code={service_code}, quota_code={quota_code}, region={self.region}, error={e}")
            raise

    def _log_client_error(self, api_name: str, service_code: str, quota_code: str, error: ClientError):
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))

        if error_code == 'NoSuchResourceException':
            logger.warning(f"{api_name} 配额不存在: service_code={service_code}, quota_code={quota_code}, region={self.region}")
        elif error_code == 'AccessDeniedException':
            logger.error(f"{api_name} 权限不足: service_code={service_code}, quota_code={quota_code}, region={self.region}")
        elif error_code == 'TooManyRequestsException':
            # 不在本周期内重试，下一次调度即为重试
            logger.warning(f"{api_name} API 限流: service_code={service_code}, quota_code={quota_code}, region={self.region}")
        else:
            logger.error(
                f"{api_name} 失败: service_code={service_code}, quota_code={quota_code}, "
                f"region={self.region}, error={error_code}: {error_message}"
            )
