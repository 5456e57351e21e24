#!/usr/bin/env python3
"""
Rightmove 爬取脚本

用法示例:
    python run_crawl.py                                  # 使用 config.py 里的默认值
    python run_crawl.py --search-location Manchester --max-results 50
    python run_crawl.py --channel BUY --no-details        # 只要搜索页卡片，不进详情页
    python run_crawl.py --start-url "https://www.rightmove.co.uk/new-homes-for-sale/find.html?..."
"""

import argparse
import json
import os
import sys

from loguru import logger
from scrapy.crawler import CrawlerProcess
from scrapy.utils.project import get_project_settings

from config import Config


def setup_logging():
    os.makedirs(Config.LOGS_DIR, exist_ok=True)
    logger.add(
        os.path.join(Config.LOGS_DIR, "rightmove_crawl.log"),
        level=Config.LOG_LEVEL,
        rotation=Config.LOG_ROTATION,
        retention=Config.LOG_RETENTION,
        encoding="utf-8",
    )


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="爬取 Rightmove 房源并写入数据库")
    p.add_argument("--search-location", help="搜索地点，例如 London / Manchester")
    p.add_argument("--location-identifier", help="Rightmove 地点ID，例如 REGION^87490")
    p.add_argument("--radius", help="搜索半径（英里）")
    p.add_argument("--min-price", help="最低价格")
    p.add_argument("--max-price", help="最高价格")
    p.add_argument("--min-bedrooms", help="最少卧室数")
    p.add_argument("--max-bedrooms", help="最多卧室数")
    p.add_argument("--property-types", help="物业类型，逗号分隔，例如 detached,flat")
    p.add_argument("--channel", help="NEW_HOME 或 BUY")
    p.add_argument("--start-url", help="直接指定搜索页，会覆盖其他搜索条件")
    p.add_argument("--max-results", help="最多爬取的房源数")
    p.add_argument("--max-pages", help="最多翻页数")
    p.add_argument("--no-details", action="store_true", help="不进入详情页，只保存搜索页卡片")
    return p.parse_args(argv)


def spider_arguments(args):
    """命令行参数 -> spider 参数，没给的不传，由 Config 默认值补上"""
    options = {key: value for key, value in vars(args).items() if key != 'no_details' and value is not None}
    if args.no_details:
        options['collect_details'] = False
    return options


def read_summary(path):
    try:
        with open(path, encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        return None


def main(argv=None):
    args = parse_args(argv)
    setup_logging()
    options = spider_arguments(args)

    os.environ.setdefault('SCRAPY_SETTINGS_MODULE', 'rightmove_scraper.settings')
    settings = get_project_settings()
    summary_path = settings.get('RUN_SUMMARY_PATH', Config.RUN_SUMMARY_PATH)

    # 删掉上一次的摘要，避免读到旧结果
    if os.path.exists(summary_path):
        os.remove(summary_path)

    logger.info("=" * 60)
    logger.info("Rightmove 爬虫启动")
    logger.info(f"爬虫参数: {options or '使用默认配置'}")
    logger.info("=" * 60)

    process = CrawlerProcess(settings)
    process.crawl('rightmove', **options)
    process.start()

    summary = read_summary(summary_path)
    if summary is None:
        logger.error(f"没有找到运行摘要: {summary_path}")
        return 1
    if summary['status'] == 'error':
        logger.error(f"爬取失败: {summary['error']}")
        return 1

    logger.success(
        f"爬取完成: 写入 {summary['listings_stored']} 条，入队 {summary['listings_queued']} 条，"
        f"共 {summary['pages_processed']} 页"
    )
    return 0


if __name__ == '__main__':
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.warning("用户中断")
        sys.exit(1)
