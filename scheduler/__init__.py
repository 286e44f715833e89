# -*- coding: utf-8 -*-
"""
定时任务模块

功能：
- 每个 (account, resource) 按固定间隔触发轮询
- 定期刷新账号凭证
- 在后台线程中运行，不阻塞主程序
"""

from scheduler.scheduler import QuotaScheduler

__all__ = ['QuotaScheduler']
