import json

import scrapy

from config import Config, ConfigError
from ..extractors import (
    api_partial,
    card_partial,
    embedded_partial,
    html_partial,
    linked_data_partial,
    search_result_partial,
    select_cards,
)
from ..locators import find_search_results
from ..merge import FAILED_METHOD, finalize_listing, is_complete, merge_partials
from ..pagination import HAS_NEXT, SearchCursor, resolve_next_page
from ..search import SearchUrlError, build_api_url, build_search_url
from ..state import SeenListings


class RightmoveSpider(scrapy.Spider):
    name = 'rightmove'
    allowed_domains = ['www.rightmove.co.uk', 'rightmove.co.uk']

    def __init__(self, *args, **kwargs):
        # scrapy -a 传进来的搜索条件，其余参数交给 Spider 处理
        option_names = Config.get_config_dict().keys()
        overrides = {key: kwargs.pop(key) for key in list(kwargs) if key in option_names}
        super().__init__(*args, **kwargs)

        self.base_url = Config.BASE_URL
        self.page_size = Config.PAGE_SIZE
        self.api_fallback_enabled = Config.API_FALLBACK_ENABLED
        self.api_url_template = Config.API_URL_TEMPLATE
        self.use_playwright = Config.USE_PLAYWRIGHT

        # 本次运行的共享状态
        self.seen = SeenListings()
        self.listings_queued = 0
        self.pages_processed = 0
        self.failed_listings = 0
        self.fatal_error = None
        self.search_url = None

        try:
            self.options = Config.crawl_options(**overrides)
            self.search_url = build_search_url(self.options, self.base_url)
        except (ConfigError, SearchUrlError) as e:
            self.fatal_error = str(e)
            self.options = Config.crawl_options()
            self.logger.error(f"搜索参数错误，无法开始爬取: {e}")

        start_url = self.options['start_url']
        if start_url:
            self.is_new_home_channel = 'new-homes' in start_url or 'NEW_HOME' in start_url
        else:
            self.is_new_home_channel = self.options['channel'] == 'NEW_HOME'

    @classmethod
    def from_crawler(cls, crawler, *args, **kwargs):
        """
        从 crawler 对象创建 spider 实例
        settings 里的开关会覆盖 Config 的默认值
        """
        spider = super().from_crawler(crawler, *args, **kwargs)

        settings = crawler.settings
        spider.api_fallback_enabled = settings.getbool('API_FALLBACK_ENABLED', spider.api_fallback_enabled)
        spider.api_url_template = settings.get('API_URL_TEMPLATE', spider.api_url_template)
        spider.use_playwright = settings.getbool('PLAYWRIGHT_ENABLED', spider.use_playwright)
        spider.page_size = settings.getint('SEARCH_PAGE_SIZE', spider.page_size)

        spider.logger.info(
            f"Spider 初始化成功，最多 {spider.options['max_results']} 个房源 / "
            f"{spider.options['max_pages']} 页，详情页: {spider.options['collect_details']}"
        )
        return spider

    def start_requests(self):
        if self.fatal_error:
            self.logger.error(f"没有可用的搜索地址，跳过爬取: {self.fatal_error}")
            return

        self.logger.info(f"搜索地址: {self.search_url}")
        yield self.search_request(SearchCursor(self.search_url, 1, self.page_size))

    def search_request(self, cursor):
        return scrapy.Request(
            url=cursor.request_url,
            callback=self.parse_search_page,
            meta={'page_type': 'search', 'cursor': cursor, 'playwright': self.use_playwright},
        )

    def detail_request(self, partial):
        return scrapy.Request(
            url=partial['url'],
            callback=self.parse_listing_detail,
            errback=self.detail_failed,
            meta={
                'page_type': 'detail',
                'listing_id': partial['listing_id'],
                'partials': [partial],
                'playwright': self.use_playwright,
            },
        )

    def api_request(self, listing_id, partials):
        url = build_api_url(listing_id, self.options['channel'], self.api_url_template)
        return scrapy.Request(
            url=url,
            callback=self.parse_api_fallback,
            errback=self.api_fallback_failed,
            headers={'Accept': 'application/json'},
            meta={'page_type': 'api', 'listing_id': listing_id, 'partials': partials},
            dont_filter=True,
        )

    def extract_cards(self, response):
        """搜索页上的所有房源卡片 -> partial 列表"""
        partials = []
        for card in select_cards(response):
            try:
                partial = card_partial(card, is_new_home=self.is_new_home_channel, base=response.url)
            except Exception as e:
                self.logger.warning(f"卡片解析失败: {e}")
                continue
            if partial:
                partials.append(partial)

        if not partials:
            # HTML 里没有卡片时，试试内嵌 JSON 里的房源列表
            for entry in find_search_results(response.text):
                partial = search_result_partial(entry, is_new_home=self.is_new_home_channel, base=response.url)
                if partial:
                    partials.append(partial)
        return partials

    def parse_search_page(self, response):
        """
        解析搜索页，提取房源卡片和下一页链接
        """
        cursor = response.meta.get('cursor') or SearchCursor(response.url, 1, self.page_size)
        self.pages_processed += 1
        self.logger.info(f"[{response.status}] 正在解析搜索页 第 {cursor.page_number} 页: {response.url[:80]}")

        partials = self.extract_cards(response)
        self.logger.info(f"  找到 {len(partials)} 个房源卡片")
        if not partials:
            self.logger.info("  本页没有房源，停止翻页")
            return

        max_results = self.options['max_results']
        queued = []
        for partial in partials:
            if self.listings_queued >= max_results:
                break
            if not self.seen.claim(partial['url']):
                continue
            self.listings_queued += 1
            queued.append(partial)
        self.logger.info(f"  新房源 {len(queued)} 个，累计 {self.listings_queued}/{max_results}")

        for partial in queued:
            if self.options['collect_details']:
                yield self.detail_request(partial)
            else:
                yield self.finalize(partial['listing_id'], [partial])

        if self.listings_queued >= max_results:
            self.logger.info(f"已达到房源上限 {max_results}，停止翻页")
            return

        transition = resolve_next_page(response, cursor, self.options['max_pages'])
        if transition.state == HAS_NEXT:
            self.logger.info(f"  翻到第 {transition.cursor.page_number} 页: {transition.cursor.request_url}")
            yield self.search_request(transition.cursor)
        else:
            self.logger.info(f"已达到页数上限 {self.options['max_pages']}，停止翻页")

    def parse_listing_detail(self, response):
        """
        解析详情页：JSON-LD -> 内嵌 JSON -> HTML，缺字段时再走 API
        """
        listing_id = response.meta.get('listing_id')
        partials = list(response.meta.get('partials') or [])
        self.logger.info(f"[{response.status}] 正在解析详情页: {response.url[:80]}")

        passes = (
            ('JSON-LD', lambda: linked_data_partial(response.text, base=response.url)),
            ('内嵌 JSON', lambda: embedded_partial(response.text, base=response.url)),
            ('HTML', lambda: html_partial(response, base=response.url)),
        )
        for label, extract in passes:
            try:
                partial = extract()
            except Exception as e:
                self.logger.warning(f"{label} 提取失败 {listing_id}: {e}")
                continue
            if partial:
                partials.append(partial)

        if self.api_fallback_enabled and listing_id and not is_complete(merge_partials(partials)):
            self.logger.info(f"  房源 {listing_id} 缺少必要字段，调用 API 兜底")
            yield self.api_request(listing_id, partials)
            return

        yield self.finalize(listing_id, partials)

    def parse_api_fallback(self, response):
        listing_id = response.meta.get('listing_id')
        partials = list(response.meta.get('partials') or [])

        try:
            data = json.loads(response.text)
        except ValueError:
            self.logger.warning(f"API 返回的不是 JSON: {listing_id}")
            data = None

        if data is not None:
            partial = api_partial(data, base=self.base_url)
            if partial:
                partials.append(partial)

        yield self.finalize(listing_id, partials)

    def detail_failed(self, failure):
        """详情页请求失败时，用卡片上已有的数据输出"""
        request = failure.request
        listing_id = request.meta.get('listing_id')
        self.logger.warning(f"详情页请求失败 {listing_id}: {failure.value!r}")
        yield self.finalize(listing_id, list(request.meta.get('partials') or []))

    def api_fallback_failed(self, failure):
        """API 请求失败也要输出已有的数据，不能丢"""
        request = failure.request
        listing_id = request.meta.get('listing_id')
        self.logger.warning(f"API 兜底失败 {listing_id}: {failure.value!r}")
        yield self.finalize(listing_id, list(request.meta.get('partials') or []))

    def finalize(self, listing_id, partials):
        item = finalize_listing(partials)
        if item['extraction_method'] == FAILED_METHOD:
            self.failed_listings += 1
            self._inc_stat('listings/failed')
        self._inc_stat(f"listings/method/{item['extraction_method']}")
        self.logger.info(
            f"  成功解析房源 {listing_id}: {item.get('address') or item.get('title')} "
            f"({item['extraction_method']})"
        )
        return item

    def _inc_stat(self, key):
        crawler = getattr(self, 'crawler', None)
        if crawler is not None and crawler.stats is not None:
            crawler.stats.inc_value(key)

    def closed(self, reason):
        self.logger.info(
            f"爬取结束（{reason}）: 入队 {self.listings_queued}，唯一房源 {len(self.seen)}，"
            f"页数 {self.pages_processed}，失败 {self.failed_listings}"
        )
