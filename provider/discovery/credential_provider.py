# -*- coding: utf-8 -*-
"""
Credential Provider 实现

功能：
- 为每个账号创建 boto3 Session
- 支持静态 Access Key / Secret Key
- 支持 AssumeRole（临时凭证，由客户端集合定期刷新）
- 支持 boto3 默认凭证链
"""

import logging
import boto3
from abc import ABC, abstractmethod
from botocore.exceptions import ClientError, BotoCoreError
from config.loader import AccountConfig

logger = logging.getLogger(__name__)

ROLE_SESSION_NAME = 'service-quotas-exporter'


class CredentialProvider(ABC):
    """
    凭证 Provider 接口

    功能：
    - 每次调用返回一个新的 boto3 Session
    - 刷新客户端集合时重新调用，以获得新的临时凭证
    """

    @abstractmethod
    def create_session(self) -> boto3.Session:
        """
        创建 boto3 Session

        Returns:
            boto3.Session
        """
        pass

    @abstractmethod
    def get_provider_type(self) -> str:
        """
        获取 Provider 类型

        Returns:
            Provider 类型名称，如 "static", "assume_role", "default"
        """
        pass


class StaticCredentialProvider(CredentialProvider):
    """使用固定 Access Key / Secret Key 的凭证 Provider"""

    def __init__(self, access_key: str, secret_key: str):
        self.access_key = access_key
        self.secret_key = secret_key

    def create_session(self) -> boto3.Session:
        return boto3.Session(
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key
        )

    def get_provider_type(self) -> str:
        return "static"


class AssumeRoleCredentialProvider(CredentialProvider):
    """
    AssumeRole 凭证 Provider

    使用默认凭证链调用 STS AssumeRole，返回带临时凭证的 Session。
    临时凭证默认 1 小时过期，需要在过期前刷新客户端集合。
    """

    def __init__(self, role_arn: str, region: str = 'us-west-2', base_session: boto3.Session = None):
        """
        初始化 AssumeRole Credential Provider

        Args:
            role_arn: 角色 ARN
            region: STS 客户端使用的 region
            base_session: 调用 AssumeRole 使用的 Session（可选，默认凭证链）
        """
        self.role_arn = role_arn
        self.region = region
        self.base_session = base_session
        logger.info(f"初始化 AssumeRole Credential Provider: {role_arn}")

    def create_session(self) -> boto3.Session:
        base_session = self.base_session or boto3.Session()
        sts_client = base_session.client('sts', region_name=self.region)

        try:
            response = sts_client.assume_role(
                RoleArn=self.role_arn,
                RoleSessionName=ROLE_SESSION_NAME
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            error_message = e.response.get("Error", {}).get("Message")
            logger.error(f"AssumeRole 失败: {self.role_arn}, {error_code} - {error_message}")
            raise
        except BotoCoreError as e:
            logger.error(f"AssumeRole 失败（BotoCoreError）: {self.role_arn}, {e}")
            raise

        credentials = response['Credentials']
        logger.debug(f"AssumeRole 成功: {self.role_arn}, 过期时间: {credentials.get('Expiration')}")

        return boto3.Session(
            aws_access_key_id=credentials['AccessKeyId'],
            aws_secret_access_key=credentials['SecretAccessKey'],
            aws_session_token=credentials['SessionToken']
        )

    def get_provider_type(self) -> str:
        return "assume_role"


class DefaultCredentialProvider(CredentialProvider):
    """使用 boto3 默认凭证链（环境变量、配置文件、实例角色等）"""

    def create_session(self) -> boto3.Session:
        return boto3.Session()

    def get_provider_type(self) -> str:
        return "default"


def credential_provider_for(account: AccountConfig, region: str = 'us-west-2') -> CredentialProvider:
    """
    根据账号配置选择凭证 Provider

    Args:
        account: 账号配置
        region: STS 调用使用的 region

    Returns:
        CredentialProvider 实例
    """
    if account.role_arn:
        return AssumeRoleCredentialProvider(account.role_arn, region=region)
    if account.access_key and account.secret_key:
        return StaticCredentialProvider(account.access_key, account.secret_key)
    return DefaultCredentialProvider()
