# Scrapy settings for rightmove_scraper project
#
# 大部分数值来自 config.Config，这里只负责翻译成 Scrapy 的设置项
#
#     https://docs.scrapy.org/en/latest/topics/settings.html
#     https://docs.scrapy.org/en/latest/topics/downloader-middleware.html

from config import Config

BOT_NAME = "rightmove_scraper"

SPIDER_MODULES = ["rightmove_scraper.spiders"]
NEWSPIDER_MODULE = "rightmove_scraper.spiders"

# Obey robots.txt rules
ROBOTSTXT_OBEY = False

# Concurrency and throttling settings
CONCURRENT_REQUESTS = Config.MAX_CONCURRENCY
CONCURRENT_REQUESTS_PER_DOMAIN = Config.MAX_CONCURRENCY
# 实际间隔在 0.5 ~ 1.5 倍之间随机，平均值 = 基础间隔 + 一半抖动
DOWNLOAD_DELAY = Config.REQUEST_DELAY + Config.REQUEST_JITTER / 2
RANDOMIZE_DOWNLOAD_DELAY = True
DOWNLOAD_TIMEOUT = Config.REQUEST_TIMEOUT

# --- 重试配置 ---
RETRY_ENABLED = True
RETRY_TIMES = Config.MAX_RETRIES
RETRY_HTTP_CODES = [403, 408, 429, 500, 502, 503, 504, 522, 524]

# Override the default request headers
DEFAULT_REQUEST_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Language': 'en-GB,en;q=0.9',
}

# Enable or disable downloader middlewares
# 关掉自带的 UserAgentMiddleware，由 RotatingHeadersMiddleware 负责
DOWNLOADER_MIDDLEWARES = {
    "scrapy.downloadermiddlewares.useragent.UserAgentMiddleware": None,
    "rightmove_scraper.middlewares.RotatingHeadersMiddleware": 400,
}

# Enable or disable extensions
EXTENSIONS = {
    "rightmove_scraper.extensions.RunSummaryExtension": 500,
}

# Configure item pipelines
ITEM_PIPELINES = {
    "rightmove_scraper.pipelines.ListingBatchPipeline": 300,
}

# --- 爬虫自己的设置 ---
API_FALLBACK_ENABLED = Config.API_FALLBACK_ENABLED
API_URL_TEMPLATE = Config.API_URL_TEMPLATE
SEARCH_PAGE_SIZE = Config.PAGE_SIZE
DATABASE_URL = Config.DATABASE_URL
BATCH_SIZE = Config.BATCH_SIZE
RUN_SUMMARY_PATH = Config.RUN_SUMMARY_PATH

# --- Playwright 配置 ---
# 默认直接下载 HTML，页面需要渲染时把 Config.USE_PLAYWRIGHT 打开
PLAYWRIGHT_ENABLED = Config.USE_PLAYWRIGHT
if PLAYWRIGHT_ENABLED:
    DOWNLOAD_HANDLERS = {
        "http": "scrapy_playwright.handler.ScrapyPlaywrightDownloadHandler",
        "https": "scrapy_playwright.handler.ScrapyPlaywrightDownloadHandler",
    }
    PLAYWRIGHT_BROWSER_TYPE = "chromium"
    PLAYWRIGHT_LAUNCH_OPTIONS = {"headless": True}  # 无头模式运行浏览器
    PLAYWRIGHT_DEFAULT_NAVIGATION_TIMEOUT = Config.REQUEST_TIMEOUT * 1000

TWISTED_REACTOR = "twisted.internet.asyncioreactor.AsyncioSelectorReactor"

LOG_LEVEL = Config.LOG_LEVEL

# Set settings whose default value is deprecated to a future-proof value
FEED_EXPORT_ENCODING = "utf-8"
