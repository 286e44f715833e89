# -*- coding: utf-8 -*-
"""
tests/test_provider.py - 账号轮询器测试

覆盖：统计 -> 解析配额 -> 写入快照 的完整流程，失败时保留旧值，客户端集合刷新。
"""

import threading
from unittest.mock import MagicMock

from collector import (
    QuotaStatus,
    RESOURCE_BUCKETS,
    RESOURCE_CERTIFICATES,
    RESOURCE_DISTRIBUTIONS,
    RESOURCE_ORIGIN_ACCESS_IDENTITIES,
)
from config.loader import AccountConfig
from conftest import client_error, default_quota_client
from provider.aws.provider import AWSProvider

REGIONS = ("eu-north-1", "eu-west-1", "us-east-1", "us-west-2")


def _provider(quota_collector, make_client_set, account="prod", **kwargs):
    client_sets = []

    def factory(account, regions, credential_provider, default_region, generation):
        client_set = make_client_set(account=account, regions=regions, generation=generation, **kwargs)
        client_sets.append(client_set)
        return client_set

    provider = AWSProvider(
        account=AccountConfig(name=account),
        regions=list(REGIONS),
        credential_provider=MagicMock(),
        quota_collector=quota_collector,
        client_set_factory=factory,
    )
    provider.initialize()
    return provider, client_sets


def _gauge(registry, name, **labels):
    return registry.get_sample_value(name, labels)


class TestCheckBuckets:
    """S3 桶轮询"""

    def test_publishes_every_tracked_region(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set, quota_value=100.0)
        client_set = provider.client_set
        client_set.s3.list_buckets.return_value = [{"Name": "a"}, {"Name": "b"}, {"Name": "c"}]
        locations = {"a": "us-east-1", "b": "us-east-1", "c": "eu-west-1"}
        client_set.s3.get_bucket_location.side_effect = lambda name: locations[name]

        results = provider.check_buckets()

        assert all(r.is_success() for r in results)
        expected = {"us-east-1": 2, "eu-west-1": 1, "eu-north-1": 0, "us-west-2": 0}
        for region, count in expected.items():
            assert _gauge(registry, "total_buckets_usage_per_region_current", account="prod", region=region) == count
            assert _gauge(registry, "total_buckets_usage_per_region_limited", account="prod", region=region) == 100.0

    def test_requested_quota_is_published(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set)
        client_set = provider.client_set
        client_set.s3.list_buckets.return_value = []
        client_set.service_quotas["us-west-2"].list_requested_quota_changes.return_value = [
            {"DesiredValue": 1000.0},
            {"DesiredValue": 5000.0},
        ]

        provider.check_buckets()

        assert _gauge(registry, "total_buckets_usage_per_region_limited", account="prod", region="us-west-2") == 5000.0

    def test_list_failure_leaves_previous_snapshot(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set)
        client_set = provider.client_set
        client_set.s3.list_buckets.return_value = [{"Name": "a"}]
        client_set.s3.get_bucket_location.return_value = "eu-west-1"
        provider.check_buckets()

        client_set.s3.list_buckets.side_effect = client_error("AccessDenied", "ListBuckets")
        results = provider.check_buckets()

        assert len(results) == 1
        assert results[0].status == QuotaStatus.FAILED
        assert results[0].reason == "list_failed"
        assert _gauge(registry, "total_buckets_usage_per_region_current", account="prod", region="eu-west-1") == 1

    def test_quota_failure_skips_only_that_region(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set, quota_value=100.0)
        client_set = provider.client_set
        client_set.s3.list_buckets.return_value = [{"Name": "a"}]
        client_set.s3.get_bucket_location.return_value = "eu-west-1"
        provider.check_buckets()

        client_set.s3.list_buckets.return_value = [{"Name": "a"}, {"Name": "b"}]
        client_set.service_quotas["eu-west-1"].list_requested_quota_changes.side_effect = client_error()
        results = provider.check_buckets()

        by_region = {r.region: r for r in results}
        assert by_region["eu-west-1"].status == QuotaStatus.FAILED
        assert by_region["eu-west-1"].reason == "quota_lookup_failed"
        assert by_region["us-east-1"].is_success()
        # current 和 limit 都保留上一次的值
        assert _gauge(registry, "total_buckets_usage_per_region_current", account="prod", region="eu-west-1") == 1
        assert _gauge(registry, "total_buckets_usage_per_region_limited", account="prod", region="eu-west-1") == 100.0

    def test_malformed_history_skips_only_that_region(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set, quota_value=100.0)
        client_set = provider.client_set
        client_set.s3.list_buckets.return_value = [{"Name": "a"}, {"Name": "b"}]
        client_set.s3.get_bucket_location.side_effect = lambda name: {"a": "eu-west-1", "b": "us-west-2"}[name]
        client_set.service_quotas["eu-north-1"].list_requested_quota_changes.return_value = [{"Status": "CASE_CLOSED"}]
        client_set.service_quotas["eu-west-1"].list_requested_quota_changes.return_value = [{"DesiredValue": None}]

        results = provider.check_buckets()

        by_region = {r.region: r for r in results}
        assert set(by_region) == set(REGIONS)
        assert by_region["eu-north-1"].reason == "quota_lookup_failed"
        assert by_region["eu-west-1"].reason == "quota_lookup_failed"
        assert by_region["us-west-2"].is_success()
        assert _gauge(registry, "total_buckets_usage_per_region_current", account="prod", region="eu-west-1") is None
        assert _gauge(registry, "total_buckets_usage_per_region_current", account="prod", region="us-west-2") == 1

    def test_accounts_do_not_collide(self, quota_collector, make_client_set, registry):
        prod, _ = _provider(quota_collector, make_client_set, account="prod")
        dev, _ = _provider(quota_collector, make_client_set, account="dev")
        prod.client_set.s3.list_buckets.return_value = [{"Name": "a"}]
        prod.client_set.s3.get_bucket_location.return_value = "us-east-1"
        dev.client_set.s3.list_buckets.return_value = []

        prod.check_buckets()
        dev.check_buckets()

        assert _gauge(registry, "total_buckets_usage_per_region_current", account="prod", region="us-east-1") == 1
        assert _gauge(registry, "total_buckets_usage_per_region_current", account="dev", region="us-east-1") == 0


class TestCheckCertificates:
    """ACM 证书轮询"""

    def test_fixed_quota_region(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set, quota_value=2000.0)
        client_set = provider.client_set
        for region in REGIONS:
            client_set.acm[region].list_certificates.return_value = [{}, {}]

        results = provider.check_certificates()

        assert all(r.is_success() for r in results)
        assert _gauge(registry, "total_certificates_usage_per_region_limited", account="prod", region="eu-north-1") == 2500.0
        assert _gauge(registry, "total_certificates_usage_per_region_limited", account="prod", region="us-east-1") == 2000.0
        assert _gauge(registry, "total_certificates_usage_per_region_current", account="prod", region="eu-north-1") == 2
        client_set.service_quotas["eu-north-1"].list_requested_quota_changes.assert_not_called()
        client_set.service_quotas["eu-north-1"].get_default_service_quota.assert_not_called()

    def test_list_failure_for_one_region(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set)
        client_set = provider.client_set
        for region in REGIONS:
            client_set.acm[region].list_certificates.return_value = [{}]
        client_set.acm["eu-west-1"].list_certificates.side_effect = client_error()

        results = provider.check_certificates()

        by_region = {r.region: r for r in results}
        assert by_region["eu-west-1"].status == QuotaStatus.FAILED
        assert _gauge(registry, "total_certificates_usage_per_region_current", account="prod", region="eu-west-1") is None
        assert _gauge(registry, "total_certificates_usage_per_region_current", account="prod", region="us-west-2") == 1
        client_set.service_quotas["eu-west-1"].list_requested_quota_changes.assert_not_called()


class TestCheckCloudFront:
    """CloudFront 全局轮询"""

    def test_distributions_use_quota_home_region(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set)
        client_set = provider.client_set
        client_set.cloudfront.list_distributions.return_value = [{}, {}, {}]
        client_set.service_quotas["us-east-1"] = default_quota_client(value=200.0)

        results = provider.check_cloudfront_distributions()

        assert results[0].is_success()
        assert results[0].region is None
        assert _gauge(registry, "total_cloudfront_distributions_usage_current", account="prod") == 3
        assert _gauge(registry, "total_cloudfront_distributions_usage_limited", account="prod") == 200.0
        client_set.service_quotas["us-west-2"].list_requested_quota_changes.assert_not_called()

    def test_oai_failure(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set)
        provider.client_set.cloudfront.list_origin_access_identities.side_effect = client_error()

        results = provider.check_cloudfront_oai()

        assert results[0].is_failed()
        assert _gauge(registry, "total_cloudfront_origin_access_identifies_usage_current", account="prod") is None
        assert _gauge(registry, "total_aws_api_call_failed_count", api="listOAI") == 1


class TestPoll:
    """poll 记录结果和耗时"""

    def test_poll_records_results(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set)
        provider.client_set.cloudfront.list_origin_access_identities.return_value = []

        results = provider.poll(RESOURCE_ORIGIN_ACCESS_IDENTITIES)

        assert results[0].is_success()
        summary = quota_collector.get_summary()
        assert summary["by_resource"][RESOURCE_ORIGIN_ACCESS_IDENTITIES]["success"] == 1
        assert _gauge(registry, "quota_exporter_poll_duration_seconds_count", resource=RESOURCE_ORIGIN_ACCESS_IDENTITIES) == 1

    def test_every_resource_has_a_poller(self, quota_collector, make_client_set):
        provider, _ = _provider(quota_collector, make_client_set)
        assert set(provider.pollers) == {
            RESOURCE_BUCKETS,
            RESOURCE_CERTIFICATES,
            RESOURCE_DISTRIBUTIONS,
            RESOURCE_ORIGIN_ACCESS_IDENTITIES,
        }


class TestRefreshClients:
    """客户端集合刷新"""

    def test_refresh_replaces_whole_set(self, quota_collector, make_client_set):
        provider, client_sets = _provider(quota_collector, make_client_set)
        first = provider.client_set

        assert provider.refresh_clients() is True

        assert provider.client_set is not first
        assert provider.client_set.generation == 2
        assert len(client_sets) == 2

    def test_failed_refresh_keeps_previous_set(self, quota_collector, make_client_set):
        provider, _ = _provider(quota_collector, make_client_set)
        first = provider.client_set
        provider.client_set_factory = MagicMock(side_effect=client_error("ExpiredToken", "AssumeRole"))

        assert provider.refresh_clients() is False
        assert provider.client_set is first

    def test_in_flight_poll_keeps_captured_set(self, quota_collector, make_client_set, registry):
        provider, _ = _provider(quota_collector, make_client_set)
        old_set = provider.client_set
        started = threading.Event()
        release = threading.Event()

        def slow_list():
            started.set()
            release.wait(5)
            return [{}]

        old_set.cloudfront.list_distributions.side_effect = slow_list

        thread = threading.Thread(target=provider.check_cloudfront_distributions)
        thread.start()
        assert started.wait(5)

        provider.refresh_clients()
        new_set = provider.client_set
        release.set()
        thread.join(5)

        new_set.cloudfront.list_distributions.assert_not_called()
        old_set.service_quotas["us-east-1"].list_requested_quota_changes.assert_called_once()
        assert _gauge(registry, "total_cloudfront_distributions_usage_current", account="prod") == 1
