# -*- coding: utf-8 -*-
"""
ACM API 客户端模块

功能：
- 封装 ACM ListCertificates 调用（按 region）
"""

import logging
import boto3
from typing import List, Dict, Any

logger = logging.getLogger(__name__)


class ACMClient:
    """
    ACM API 客户端

    ACM 是区域型服务，每个 region 一个客户端
    """

    def __init__(self, region: str, session: boto3.Session = None):
        """
        初始化 ACM 客户端

        Args:
            region: AWS Region
            session: boto3 Session（可选，不提供则使用默认凭证链）
        """
        self.region = region

        try:
            if session is not None:
                self.client = session.client('acm', region_name=region)
            else:
                self.client = boto3.client('acm', region_name=region)

            logger.debug(f"ACM 客户端初始化成功 (region: {region})")
        except Exception as e:
            logger.error(f"ACM 客户端初始化失败 (region: {region}): {e}")
            raise

    def list_certificates(self) -> List[Dict[str, Any]]:
        """
        获取该 region 下所有证书（使用 paginator）

        Returns:
            CertificateSummary 列表
        """
        certificates = []
        paginator = self.client.get_paginator('list_certificates')

        for page in paginator.paginate():
            certificates.extend(page.get('CertificateSummaryList', []))

        logger.debug(f"ACM ListCertificates 完成 (region: {self.region})，共 {len(certificates)} 个证书")
        return certificates
