# -*- coding: utf-8 -*-
"""
S3 API 客户端模块

功能：
- 封装 S3 API 调用（ListBuckets、GetBucketLocation）
- 把 GetBucketLocation 的返回值规范化为 region
"""

import logging
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)

# LocationConstraint 为空表示桶位于 us-east-1（历史默认区域）
LEGACY_DEFAULT_REGION = 'us-east-1'

# 早期 eu-west-1 的桶返回的是 "EU"
LEGACY_LOCATION_ALIASES = {
    'EU': 'eu-west-1',
}


def normalize_bucket_location(location_constraint: Optional[str]) -> str:
    """
    把 LocationConstraint 转换为 region

    Args:
        location_constraint: GetBucketLocation 返回的 LocationConstraint

    Returns:
        region 字符串
    """
    if not location_constraint:
        return LEGACY_DEFAULT_REGION
    return LEGACY_LOCATION_ALIASES.get(location_constraint, location_constraint)


class S3Client:
    """
    S3 API 客户端

    功能：
    - 列出账号下所有桶（全局调用，不区分 region）
    - 查询单个桶所在的 region
    """

    def __init__(self, region: str = 'us-west-2', session: boto3.Session = None):
        """
        初始化 S3 客户端

        Args:
            region: 客户端使用的 region（ListBuckets 是全局调用，任意 region 均可）
            session: boto3 Session（可选，不提供则使用默认凭证链）
        """
        self.region = region

        try:
            if session is not None:
                self.client = session.client('s3', region_name=region)
            else:
                self.client = boto3.client('s3', region_name=region)

            logger.debug(f"S3 客户端初始化成功 (region: {region})")
        except Exception as e:
            logger.error(f"S3 客户端初始化失败: {e}")
            raise

    def list_buckets(self) -> List[Dict[str, Any]]:
        """
        获取账号下所有桶（支持 ContinuationToken 分页）

        Returns:
            桶列表，每个桶是一个字典（包含 Name、CreationDate）
        """
        try:
            all_buckets = []
            continuation_token = None

            while True:
                request_params = {}
                if continuation_token:
                    request_params['ContinuationToken'] = continuation_token

                response = self.client.list_buckets(**request_params)
                buckets = response.get('Buckets', [])
                all_buckets.extend(buckets)

                continuation_token = response.get('ContinuationToken')
                if not continuation_token:
                    break

            logger.debug(f"S3 ListBuckets 完成，共 {len(all_buckets)} 个桶")
            return all_buckets

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            error_message = e.response.get("Error", {}).get("Message")
            logger.error(f"S3 ListBuckets 失败: {error_code} - {error_message}")
            raise
        except BotoCoreError as e:
            logger.error(f"S3 ListBuckets 失败（BotoCoreError）: {e}")
            raise

    def get_bucket_location(self, bucket_name: str) -> str:
        """
        查询桶所在的 region

        Args:
            bucket_name: 桶名称

        Returns:
            region 字符串（LocationConstraint 为空时返回 us-east-1）
        """
        response = self.client.get_bucket_location(Bucket=bucket_name)
        return normalize_bucket_location(response.get('LocationConstraint'))
