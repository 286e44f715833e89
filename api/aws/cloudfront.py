# -*- coding: utf-8 -*-
"""
CloudFront API 客户端模块

功能：
- 封装 CloudFront API 调用（ListDistributions、ListCloudFrontOriginAccessIdentities）
- 处理 Marker 分页
"""

import logging
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from typing import List, Dict, Any, Callable

logger = logging.getLogger(__name__)


class CloudFrontClient:
    """
    CloudFront API 客户端

    功能：
    - 调用 CloudFront API 获取资源信息
    - 返回标准化的资源数据
    """

    def __init__(self, region: str = 'us-east-1', session: boto3.Session = None):
        """
        初始化 CloudFront 客户端

        Args:
            region: AWS Region（CloudFront 是全局服务，固定使用 us-east-1）
            session: boto3 Session（可选，不提供则使用默认凭证链）
        """
        self.region = region

        try:
            if session is not None:
                self.client = session.client('cloudfront', region_name=region)
            else:
                self.client = boto3.client('cloudfront', region_name=region)

            logger.debug(f"CloudFront 客户端初始化成功 (region: {region})")
        except Exception as e:
            logger.error(f"CloudFront 客户端初始化失败: {e}")
            raise

    def list_distributions(self) -> List[Dict[str, Any]]:
        """
        获取所有 CloudFront Distributions 列表（支持分页）

        Returns:
            Distribution 列表，每个 Distribution 是一个字典
        """
        return self._list_all(
            operation=self.client.list_distributions,
            list_key='DistributionList',
            api_name='ListDistributions'
        )

    def list_origin_access_identities(self) -> List[Dict[str, Any]]:
        """
        获取所有 CloudFront Origin Access Identities 列表（支持分页）

        Returns:
            OAI 摘要列表
        """
        return self._list_all(
            operation=self.client.list_cloud_front_origin_access_identities,
            list_key='CloudFrontOriginAccessIdentityList',
            api_name='ListCloudFrontOriginAccessIdentities'
        )

    def _list_all(self, operation: Callable, list_key: str, api_name: str) -> List[Dict[str, Any]]:
        """
        按 Marker/NextMarker 翻页，汇总所有 Items

        Args:
            operation: boto3 客户端方法
            list_key: 响应中列表对象的键
            api_name: API 名称（用于日志）
        """
        try:
            logger.debug(f"调用 CloudFront {api_name} API (region: {self.region})")

            all_items = []
            marker = None

            while True:
                request_params = {}
                if marker:
                    request_params['Marker'] = marker

                response = operation(**request_params)

                item_list = response.get(list_key, {})
                items = item_list.get('Items', [])
                all_items.extend(items)

                logger.debug(f"获取到 {len(items)} 个条目 (累计: {len(all_items)})")

                # 检查是否有下一页
                if item_list.get('IsTruncated', False):
                    marker = item_list.get('NextMarker')
                    if not marker:
                        logger.warning(f"CloudFront {api_name} 返回 IsTruncated=True 但 NextMarker 为空")
                        break
                else:
                    break

            logger.info(f"CloudFront {api_name} 完成，共 {len(all_items)} 个条目")
            return all_items

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            error_message = e.response.get("Error", {}).get("Message")
            logger.error(f"CloudFront {api_name} 失败: {error_code} - {error_message}")
            raise
        except BotoCoreError as e:
            logger.error(f"CloudFront {api_name} 失败（BotoCoreError）: {e}")
            raise
