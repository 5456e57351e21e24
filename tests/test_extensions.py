import json
from types import SimpleNamespace

import scrapy

from rightmove_scraper.extensions import RunSummaryExtension, build_run_summary
from rightmove_scraper.state import SeenListings


class DummyStats:
    def __init__(self, values):
        self.values = values

    def get_stats(self):
        return dict(self.values)


def _spider(**attrs):
    seen = SeenListings()
    seen.claim('https://www.rightmove.co.uk/properties/1')
    defaults = {'fatal_error': None, 'seen': seen, 'listings_queued': 1, 'pages_processed': 2, 'failed_listings': 0}
    defaults.update(attrs)
    return SimpleNamespace(**defaults)


def test_successful_summary():
    summary = build_run_summary(_spider(), {'listings/stored': 1}, 'finished')
    assert summary['status'] == 'success'
    assert summary['error'] is None
    assert summary['listings_stored'] == 1
    assert summary['unique_listings'] == 1
    assert summary['pages_processed'] == 2
    assert summary['finish_reason'] == 'finished'
    assert summary['completed_at']


def test_fatal_error_summary():
    summary = build_run_summary(_spider(fatal_error='channel 必须是'), {}, 'finished')
    assert summary['status'] == 'error'
    assert summary['error'] == 'channel 必须是'
    assert summary['listings_stored'] == 0


def test_abnormal_close_is_an_error():
    summary = build_run_summary(_spider(), {}, 'shutdown')
    assert summary['status'] == 'error'
    assert 'shutdown' in summary['error']


def test_summary_file_is_written(tmp_path):
    class Spider(scrapy.Spider):
        name = 'summary'

    spider = Spider()
    spider.fatal_error = None
    spider.seen = SeenListings()
    spider.listings_queued = 0
    spider.pages_processed = 1
    spider.failed_listings = 0

    path = tmp_path / 'out' / 'run_summary.json'
    ext = RunSummaryExtension(DummyStats({'listings/stored': 0}), str(path))
    ext.spider_closed(spider, 'finished')

    with open(path, encoding='utf-8') as f:
        written = json.load(f)
    assert written['status'] == 'success'
    assert written['pages_processed'] == 1
    assert written == ext.summary
