# -*- coding: utf-8 -*-
"""
定时任务实现模块

功能：
- 每个 (account, resource) 一个独立的调度循环：启动时立即触发，之后按固定间隔触发
- 每次触发在独立线程中执行，不阻塞下一次调度
- 凭证刷新使用独立的、更长的间隔
- 只负责"什么时候执行"，不关心采集细节
"""

import threading
import logging
from typing import Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# (account, resource)
JobKey = Tuple[str, str]


class QuotaScheduler:
    """
    配额轮询调度器

    职责：
    1. 为每个 (account, resource) 启动一个调度线程
    2. 每个 tick 启动一个执行线程（fire-and-forget）
    3. allow_overlap=False 时，同一 key 上一次执行未结束则跳过本次 tick
    4. 定时调用凭证刷新函数
    """

    def __init__(
        self,
        jobs: Dict[JobKey, Callable],
        poll_interval: int = 300,
        refresh_funcs: List[Callable] = None,
        refresh_interval: int = 3540,
        allow_overlap: bool = False,
        on_skip: Optional[Callable[[JobKey], None]] = None
    ):
        """
        初始化定时任务调度器

        Args:
            jobs: {(account, resource): 轮询函数}
            poll_interval: 轮询间隔（秒），默认 300（5 分钟）
            refresh_funcs: 凭证刷新函数列表
            refresh_interval: 凭证刷新间隔（秒），默认 3540（59 分钟）
            allow_overlap: 是否允许同一 key 的执行重叠
            on_skip: tick 被跳过时的回调（用于统计）
        """
        self.jobs = dict(jobs)
        self.poll_interval = poll_interval
        self.refresh_funcs = list(refresh_funcs or [])
        self.refresh_interval = refresh_interval
        self.allow_overlap = allow_overlap
        self.on_skip = on_skip

        # 控制标志
        self._running = False
        self._stop_event = threading.Event()
        self._loop_threads: List[threading.Thread] = []
        self._refresh_thread: Optional[threading.Thread] = None

        # 每个 key 一把锁，标记是否有执行中的任务
        self._in_flight: Dict[JobKey, threading.Lock] = {key: threading.Lock() for key in self.jobs}
        self._dispatched: Dict[JobKey, int] = {key: 0 for key in self.jobs}
        self._skipped: Dict[JobKey, int] = {key: 0 for key in self.jobs}
        self._counter_lock = threading.Lock()

        logger.info(
            f"QuotaScheduler 初始化完成: jobs={len(self.jobs)}, poll_interval={poll_interval}s, "
            f"refresh_interval={refresh_interval}s, allow_overlap={allow_overlap}"
        )

    def start(self):
        """
        启动定时任务

        - 每个 (account, resource) 一个调度线程
        - 一个凭证刷新线程
        """
        if self._running:
            logger.warning("定时任务已在运行")
            return

        self._running = True
        self._stop_event.clear()

        for key, func in self.jobs.items():
            account, resource = key
            thread = threading.Thread(
                target=self._poll_loop,
                args=(key, func),
                name=f"PollLoop-{account}-{resource}",
                daemon=True
            )
            thread.start()
            self._loop_threads.append(thread)

        if self.refresh_funcs:
            self._refresh_thread = threading.Thread(
                target=self._refresh_loop,
                name="CredentialRefreshThread",
                daemon=True
            )
            self._refresh_thread.start()
            logger.info("凭证刷新线程已启动")

        logger.info(f"定时任务调度器已启动，共 {len(self._loop_threads)} 个调度线程")

    def stop(self):
        """
        停止定时任务

        执行中的轮询不会被取消，只是不再触发新的 tick
        """
        if not self._running:
            return

        self._running = False
        self._stop_event.set()
        logger.info("停止定时任务调度器...")

        for thread in self._loop_threads:
            if thread.is_alive():
                thread.join(timeout=5)
        self._loop_threads = []

        if self._refresh_thread and self._refresh_thread.is_alive():
            self._refresh_thread.join(timeout=5)

        logger.info("定时任务调度器已停止")

    def _poll_loop(self, key: JobKey, func: Callable):
        """
        调度循环：立即触发一次，之后每 poll_interval 秒触发一次
        """
        logger.info(f"[Scheduler] {key} 调度循环启动，间隔: {self.poll_interval} 秒")

        while self._running:
            self.dispatch(key, func)

            # 等待指定间隔（stop 时立即返回）
            if self._stop_event.wait(self.poll_interval):
                break

        logger.info(f"[Scheduler] {key} 调度循环已退出")

    def dispatch(self, key: JobKey, func: Callable) -> bool:
        """
        触发一次执行（在新线程中运行，不等待结束）

        Args:
            key: (account, resource)
            func: 轮询函数

        Returns:
            是否已启动执行（被跳过时返回 False）
        """
        lock = self._in_flight[key]
        if not self.allow_overlap:
            if not lock.acquire(blocking=False):
                with self._counter_lock:
                    self._skipped[key] += 1
                logger.warning(f"[Scheduler] {key} 上一次执行尚未结束，跳过本次触发")
                if self.on_skip:
                    self.on_skip(key)
                return False

        thread = threading.Thread(
            target=self._run,
            args=(key, func, not self.allow_overlap),
            name=f"Poll-{key[0]}-{key[1]}",
            daemon=True
        )
        try:
            thread.start()
        except RuntimeError as e:
            # 线程没有启动，_run 不会释放锁
            if not self.allow_overlap:
                lock.release()
            logger.error(f"[Scheduler] {key} 启动执行线程失败: {e}")
            return False

        with self._counter_lock:
            self._dispatched[key] += 1
        return True

    def _run(self, key: JobKey, func: Callable, release: bool):
        """执行一次轮询，捕获所有异常，不影响调度循环"""
        try:
            logger.debug(f"[Scheduler] {key} triggered")
            func()
            logger.debug(f"[Scheduler] {key} completed")
        except Exception as e:
            logger.error(f"[Scheduler] {key} 执行异常: {e}", exc_info=True)
        finally:
            if release:
                self._in_flight[key].release()

    def _refresh_loop(self):
        """
        凭证刷新循环

        每 refresh_interval 秒调用一次所有刷新函数
        """
        logger.info(f"[Scheduler] 凭证刷新循环启动，间隔: {self.refresh_interval} 秒")

        while self._running:
            if self._stop_event.wait(self.refresh_interval):
                break

            logger.info("[Scheduler] credential refresh triggered")
            for refresh_func in self.refresh_funcs:
                try:
                    refresh_func()
                except Exception as e:
                    # 捕获异常，打印日志，不退出线程
                    logger.error(f"[Scheduler] 凭证刷新异常: {e}", exc_info=True)

        logger.info("[Scheduler] 凭证刷新循环已退出")

    def get_status(self) -> dict:
        """
        获取定时任务状态

        Returns:
            状态信息字典
        """
        with self._counter_lock:
            jobs = {
                f"{account}/{resource}": {
                    'dispatched': self._dispatched[(account, resource)],
                    'skipped': self._skipped[(account, resource)],
                    'in_flight': self._in_flight[(account, resource)].locked(),
                }
                for account, resource in self.jobs
            }

        return {
            'running': self._running,
            'poll_interval': self.poll_interval,
            'refresh_interval': self.refresh_interval,
            'allow_overlap': self.allow_overlap,
            'loop_threads_alive': sum(1 for t in self._loop_threads if t.is_alive()),
            'refresh_thread_alive': self._refresh_thread.is_alive() if self._refresh_thread else False,
            'jobs': jobs,
        }
