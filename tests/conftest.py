# -*- coding: utf-8 -*-
"""
tests/conftest.py - pytest 公共 fixture

提供独立的 Prometheus registry、QuotaCollector 和由 MagicMock 组成的客户端集合。
"""

import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from prometheus_client import CollectorRegistry

# 把项目根目录加入 sys.path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from collector import QuotaCollector  # noqa: E402
from config.loader import find_quota_home_region  # noqa: E402
from provider.aws.client_set import AccountClientSet  # noqa: E402

TEST_REGIONS = ('eu-north-1', 'eu-west-1', 'us-east-1', 'us-west-2')


@pytest.fixture(autouse=True)
def setup_test_environment():
    """测试环境设置"""
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    yield


@pytest.fixture
def registry():
    """每个测试独立的 Prometheus registry"""
    return CollectorRegistry()


@pytest.fixture
def quota_collector(registry):
    """使用独立 registry 的 QuotaCollector"""
    return QuotaCollector(registry=registry)


def client_error(code: str = "AccessDenied", operation: str = "Operation") -> ClientError:
    """构造 botocore ClientError"""
    return ClientError({"Error": {"Code": code, "Message": f"{code} message"}}, operation)


def default_quota_client(value: float = 100.0, requested=None) -> MagicMock:
    """构造 ServiceQuotasClient 模拟对象"""
    client = MagicMock()
    client.list_requested_quota_changes.return_value = list(requested or [])
    client.get_default_service_quota.return_value = {"value": value}
    return client


@pytest.fixture
def make_client_set():
    """
    客户端集合工厂

    Usage:
        client_set = make_client_set(account="prod", regions=("us-east-1",))
    """

    def _make(account: str = "test", regions=TEST_REGIONS, generation: int = 1, quota_value: float = 100.0):
        regions = tuple(regions)
        return AccountClientSet(
            account=account,
            regions=regions,
            quota_home_region=find_quota_home_region(list(regions)),
            s3=MagicMock(),
            cloudfront=MagicMock(),
            acm={region: MagicMock() for region in regions},
            service_quotas={region: default_quota_client(quota_value) for region in regions},
            generation=generation,
        )

    return _make
