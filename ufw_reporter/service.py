#!/usr/bin/env python3
"""
UFW Reporter service: wires config, cache, tailer, watcher, engine and the
background collaborators together and runs them on one event loop.
"""

import asyncio
import logging
from typing import List, Optional

from . import __version__
from .alerts import DiscordNotifier, NotificationLevel, Notifier, NullNotifier
from .config import ReporterConfig
from .network import SelfAddressProvider
from .reporting import CacheIOError, LineOutcome, LineResult, ReportCache, ReportingEngine, ReportPolicy, SpamVerifyReporter
from .reporting.summaries import run_daily_summaries
from .tailing import LogFileUnavailable, LogTailer
from .tailing.watcher import FileWatcher


logger = logging.getLogger('ufw_reporter.service')


def build_notifier(config: ReporterConfig) -> Notifier:
    if config.discord_enabled and config.discord_webhook_url:
        return DiscordNotifier(config.discord_webhook_url, server_id=config.server_id)
    return NullNotifier()


class ReporterService:
    """
    Long-running reporter.

    Usage:
        service = ReporterService(load_config())
        ok = await service.run()
    """

    def __init__(
        self,
        config: ReporterConfig,
        reporter=None,
        notifier: Optional[Notifier] = None,
        address_provider=None,
    ):
        self.config = config
        self.notifier = notifier or build_notifier(config)
        self.reporter = reporter or SpamVerifyReporter(
            api_key=config.api_key,
            url=config.api_url,
            api_key_header=config.api_key_header,
            timeout=config.request_timeout,
        )
        self.address_provider = address_provider or SelfAddressProvider(
            lookup_url=config.ip_lookup_url,
            refresh_interval=config.ip_refresh_interval,
            extra_addresses=config.extra_self_ips,
        )
        self.cache = ReportCache(config.cache_file, config.cooldown_seconds)
        self.tailer = LogTailer(config.log_file)
        self.engine = ReportingEngine(
            cache=self.cache,
            reporter=self.reporter,
            address_provider=self.address_provider,
            policy=ReportPolicy(
                port_categories=config.categories_by_port,
                comment_template=config.comment_template,
            ),
            notifier=self.notifier,
            marker=config.marker,
            block_documentation=config.block_documentation_ranges,
        )
        self.watcher: Optional[FileWatcher] = None
        self._background: List[asyncio.Task] = []
        self._stopped: Optional[asyncio.Event] = None

    def _fail(self, message: str):
        logger.error(message)
        self.notifier.notify(NotificationLevel.ERROR, message)

    async def handle_change(self) -> List[LineResult]:
        """
        Read what was appended and run each line through the engine, in order.

        A line that raises is escalated and skipped; the rest are still
        processed.
        """
        try:
            lines = self.tailer.read_new_lines()
        except LogFileUnavailable as e:
            self._fail(str(e))
            return []

        results = []
        for line in lines:
            try:
                results.append(await self.engine.process_line(line))
            except Exception as e:
                message = f"Error processing line: {e!r}: {line}"
                logger.exception(message)
                self.notifier.notify(NotificationLevel.ERROR, message)
                results.append(LineResult(LineOutcome.FAILED, reason=message))
        return results

    async def start(self) -> bool:
        """
        Prepare everything but the watch loop.

        Returns:
            False when the pipeline cannot start (unreadable cache or log file)
        """
        logger.info(f"UFW Reporter {__version__}")

        try:
            self.cache.load()
        except CacheIOError as e:
            self._fail(str(e))
            return False

        if not getattr(self.reporter, 'enabled', True):
            logger.warning("Abuse API key not configured; every report will fail")

        if isinstance(self.address_provider, SelfAddressProvider):
            logger.info("Trying to fetch your IPv4 and IPv6 addresses...")
            await self.address_provider.refresh()
            self._background.append(asyncio.create_task(self.address_provider.run()))
        logger.info(
            f"Fetched {len(self.address_provider.get_addresses())} of your IP addresses. "
            "If any of them appear in the UFW logs, they will be ignored."
        )

        try:
            self.tailer.start()
        except LogFileUnavailable as e:
            self._fail(str(e))
            return False

        if self.config.summaries_enabled:
            self._background.append(
                asyncio.create_task(run_daily_summaries(self.config.cache_file, self.notifier))
            )
        return True

    async def run(self) -> bool:
        """
        Run until stop() is called.

        Returns:
            False if the pipeline could not start
        """
        self._stopped = asyncio.Event()
        try:
            if not await self.start():
                return False

            self.watcher = FileWatcher(self.config.log_file)
            self.watcher.start()
            logger.info(f"Ready! Now monitoring: {self.config.log_file}")
            self.notifier.notify(
                NotificationLevel.SUCCESS,
                f"UFW Reporter has been successfully launched on the device `{self.config.server_id}`.",
            )

            while not self._stopped.is_set():
                change = asyncio.create_task(self.watcher.changes.get())
                stop = asyncio.create_task(self._stopped.wait())
                done, _ = await asyncio.wait({change, stop}, return_when=asyncio.FIRST_COMPLETED)
                if change not in done:
                    change.cancel()
                    break
                stop.cancel()
                self.watcher.drain()
                await self.handle_change()
            return True
        finally:
            await self.shutdown()

    def stop(self):
        if self._stopped is not None:
            self._stopped.set()

    async def shutdown(self):
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None
        for task in self._background:
            task.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._background = []
