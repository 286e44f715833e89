#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Service Quotas Exporter 主程序入口

功能：
- 加载配置（YAML + 命令行参数）
- 为每个账号创建客户端集合和轮询器
- 启动定时任务（每个账号 × 每种资源一个调度循环）
- 启动 Flask HTTP 服务器，暴露 /metrics 和 /health 端点
"""

from flask import Flask, jsonify
from prometheus_client import CONTENT_TYPE_LATEST
import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

# 导入配置加载模块
from config.loader import (
    AccountConfig,
    ExporterConfig,
    DEFAULT_ACCOUNT_NAME,
    account_name_from_role_arn,
    load_exporter_config,
)
from config.validator import validate_config

# 导入快照发布者
from collector import QuotaCollector, RESOURCE_KINDS

# 导入 Provider
from provider.aws.provider import AWSProvider
from provider.discovery import (
    AccountProvider,
    RegionProvider,
    StaticAccountProvider,
    StaticRegionProvider,
    credential_provider_for,
)

# 导入 Scheduler
from scheduler.scheduler import QuotaScheduler

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# 设置特定模块的日志级别
logging.getLogger('werkzeug').setLevel(logging.WARNING)  # 减少 Flask 日志
logging.getLogger('botocore').setLevel(logging.WARNING)

# 仓库只提供 config/exporter.example.yaml，不会被自动加载
DEFAULT_CONFIG_PATHS = ['config/exporter.yaml', 'exporter.yaml']

# 创建 Flask 应用
app = Flask(__name__)

# 全局对象（在 main 函数中初始化）
quota_collector: Optional[QuotaCollector] = None
scheduler: Optional[QuotaScheduler] = None


@app.route('/metrics')
def metrics():
    """
    Prometheus metrics 端点

    返回所有 gauge 和计数器的最新值
    格式：Prometheus text format
    """
    if quota_collector is None:
        # 如果收集器未初始化，返回空指标
        return "# Exporter not initialized\n", 200, {'Content-Type': CONTENT_TYPE_LATEST}

    metrics_data = quota_collector.get_metrics()
    return metrics_data, 200, {'Content-Type': CONTENT_TYPE_LATEST}


@app.route('/health')
def health():
    """
    健康检查端点

    返回 exporter 的健康状态、定时任务状态和快照汇总
    """
    status = {'status': 'healthy'}

    if scheduler:
        status['scheduler'] = scheduler.get_status()

    if quota_collector:
        status['summary'] = quota_collector.get_summary()

    return jsonify(status), 200


def parse_args(argv: List[str] = None) -> argparse.Namespace:
    """
    解析命令行参数

    命令行参数优先于配置文件
    """
    parser = argparse.ArgumentParser(description='AWS Service Quotas Exporter')
    parser.add_argument('--config', default=None,
                        help='配置文件路径（默认依次查找 config/exporter.yaml、exporter.yaml）')
    parser.add_argument('--interval', type=int, default=None,
                        help='time interval(minutes) of calling aws api to collect data')
    parser.add_argument('--port', type=int, default=None, help='listen port')
    parser.add_argument('--roleArn', '--role-arn', dest='role_arn', default=None,
                        help='IAM roleArn of calling aws api（未设置时读取环境变量 AWS_ROLE_ARN）')
    parser.add_argument('--log-level', dest='log_level', default=None, help='日志级别')
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ExporterConfig:
    """
    合并配置文件和命令行参数

    Raises:
        FileNotFoundError: 显式指定的配置文件不存在
        yaml.YAMLError / ValueError: 配置格式错误
    """
    config_path = args.config
    if config_path is None:
        for candidate in DEFAULT_CONFIG_PATHS:
            if os.path.exists(candidate):
                config_path = candidate
                break

    if config_path:
        logger.info(f"正在加载配置: {config_path}")
    else:
        logger.info("未找到配置文件，使用默认配置")

    config = load_exporter_config(config_path)

    if args.interval is not None:
        config.service.interval = args.interval
    if args.port is not None:
        config.service.port = args.port
    if args.log_level is not None:
        config.service.log_level = args.log_level.upper()

    role_arn = args.role_arn or os.getenv('AWS_ROLE_ARN')
    if not config.accounts:
        if role_arn:
            config.accounts.append(AccountConfig(
                name=account_name_from_role_arn(role_arn),
                role_arn=role_arn
            ))
        else:
            logger.warning("未配置账号，使用默认凭证链")
            config.accounts.append(AccountConfig(name=DEFAULT_ACCOUNT_NAME))
    elif role_arn:
        # 配置文件中没有凭证的账号使用命令行 / 环境变量中的角色
        for account in config.accounts:
            if not account.role_arn and not account.access_key:
                account.role_arn = role_arn

    return config


def build_providers(
    config: ExporterConfig,
    account_provider: AccountProvider,
    region_provider: RegionProvider,
    collector: QuotaCollector
) -> List[AWSProvider]:
    """
    为每个账号创建 AWSProvider 并初始化第一代客户端集合

    Raises:
        任一账号的凭证或客户端创建失败时抛出异常
    """
    providers = []
    for account in account_provider.get_accounts():
        provider = AWSProvider(
            account=account,
            regions=region_provider.get_regions(account.name),
            credential_provider=credential_provider_for(account, region=config.service.default_region),
            quota_collector=collector,
            default_region=config.service.default_region,
            max_workers=config.service.max_workers
        )
        provider.initialize()
        providers.append(provider)
    return providers


def build_scheduler(config: ExporterConfig, providers: List[AWSProvider], collector: QuotaCollector) -> QuotaScheduler:
    """为每个账号 × 每种资源创建调度任务"""
    jobs = {}
    for provider in providers:
        for resource in RESOURCE_KINDS:
            jobs[(provider.account, resource)] = _make_job(provider, resource)

    return QuotaScheduler(
        jobs=jobs,
        poll_interval=config.service.interval * 60,
        refresh_funcs=[provider.refresh_clients for provider in providers],
        refresh_interval=config.service.credential_refresh_interval * 60,
        allow_overlap=config.service.allow_overlap,
        on_skip=lambda key: collector.record_skipped_tick(*key)
    )


def _make_job(provider: AWSProvider, resource: str):
    def job():
        provider.poll(resource)
    return job


def main(argv: List[str] = None):
    """
    主函数：启动 exporter

    功能：
    1. 加载配置
    2. 初始化账号和客户端集合
    3. 启动定时任务
    4. 启动 HTTP 服务器
    """
    logger.info("Starting Service Quotas Exporter...")

    # Phase 1: 加载配置
    args = parse_args(argv)
    try:
        config = build_config(args)
    except FileNotFoundError as e:
        logger.error(f"配置文件不存在: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"加载配置失败: {e}")
        sys.exit(1)

    is_valid, error_message = validate_config(config)
    if not is_valid:
        logger.error(f"配置验证失败: {error_message}")
        sys.exit(1)

    logging.getLogger().setLevel(config.service.log_level.upper())

    # Phase 2: 初始化账号和客户端集合
    logger.info("=" * 60)
    logger.info("初始化账号和客户端集合")
    logger.info("=" * 60)

    account_provider = StaticAccountProvider(config.accounts)
    region_provider = StaticRegionProvider(config.regions)

    logger.info(f"账号数量: {len(config.accounts)}")
    logger.info(f"账号列表: {[account.name for account in config.accounts]}")
    logger.info(f"区域数量: {len(config.regions)}")

    global quota_collector
    quota_collector = QuotaCollector()

    try:
        providers = build_providers(config, account_provider, region_provider, quota_collector)
    except Exception as e:
        logger.error(f"初始化账号凭证失败: {e}", exc_info=True)
        sys.exit(1)

    # Phase 3: 启动定时任务（启动时立即执行第一次轮询）
    logger.info("=" * 60)
    logger.info("启动定时任务")
    logger.info("=" * 60)

    global scheduler
    scheduler = build_scheduler(config, providers, quota_collector)
    scheduler.start()

    def handle_signal(signum, frame):
        logger.info(f"收到信号 {signum}，正在退出...")
        scheduler.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    # Phase 4: 启动 Flask 服务器
    port = config.service.port
    logger.info(f"Service Quotas Exporter Started, listening on port {port}")
    app.run(host='0.0.0.0', port=port, debug=False)


if __name__ == '__main__':
    main()
