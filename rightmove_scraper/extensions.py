import json
import os
from datetime import datetime, timezone

from scrapy import signals

from config import Config


def build_run_summary(spider, stats, reason):
    """爬虫关闭时的运行摘要"""
    stats = stats or {}
    error = getattr(spider, 'fatal_error', None)
    if not error and reason != 'finished':
        error = f"爬虫异常结束: {reason}"

    seen = getattr(spider, 'seen', None)
    return {
        'status': 'error' if error else 'success',
        'listings_stored': stats.get('listings/stored', 0),
        'listings_queued': getattr(spider, 'listings_queued', 0),
        'unique_listings': len(seen) if seen is not None else 0,
        'pages_processed': getattr(spider, 'pages_processed', 0),
        'failed_listings': getattr(spider, 'failed_listings', 0),
        'finish_reason': reason,
        'error': error,
        'completed_at': datetime.now(timezone.utc).isoformat(),
    }


class RunSummaryExtension:
    """spider_closed 时把运行摘要写成 JSON 文件"""

    def __init__(self, stats, summary_path=Config.RUN_SUMMARY_PATH):
        self.stats = stats
        self.summary_path = summary_path
        self.summary = None

    @classmethod
    def from_crawler(cls, crawler):
        ext = cls(crawler.stats, crawler.settings.get('RUN_SUMMARY_PATH', Config.RUN_SUMMARY_PATH))
        crawler.signals.connect(ext.spider_closed, signal=signals.spider_closed)
        return ext

    def spider_closed(self, spider, reason):
        stats = self.stats.get_stats() if self.stats is not None else {}
        self.summary = build_run_summary(spider, stats, reason)

        directory = os.path.dirname(self.summary_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.summary_path, 'w', encoding='utf-8') as f:
            json.dump(self.summary, f, ensure_ascii=False, indent=4)

        if self.summary['status'] == 'error':
            spider.logger.error(f"运行失败: {self.summary['error']}")
        spider.logger.info(f"运行摘要已写入 {self.summary_path}: {json.dumps(self.summary, ensure_ascii=False)}")
