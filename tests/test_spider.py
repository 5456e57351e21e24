import json

import pytest
from scrapy.exceptions import IgnoreRequest
from scrapy.http import Request
from twisted.python.failure import Failure

from rightmove_scraper.items import ListingItem
from rightmove_scraper.pagination import SearchCursor
from rightmove_scraper.spiders.rightmove_spider import RightmoveSpider
from tests.conftest import (
    DETAIL_PAGE,
    DETAIL_URL,
    EMPTY_DETAIL_PAGE,
    SEARCH_PAGE,
    SEARCH_URL,
    make_json_response,
    make_response,
)


def _search_response(body=SEARCH_PAGE, page_number=1):
    return make_response(SEARCH_URL, body, meta={'cursor': SearchCursor(SEARCH_URL, page_number)})


def _split(results):
    requests = [r for r in results if isinstance(r, Request)]
    items = [r for r in results if isinstance(r, ListingItem)]
    return requests, items


def test_search_page_queues_detail_requests_and_next_page():
    spider = RightmoveSpider()
    requests, items = _split(list(spider.parse_search_page(_search_response())))

    assert items == []
    details = [r for r in requests if r.callback == spider.parse_listing_detail]
    pages = [r for r in requests if r.callback == spider.parse_search_page]
    assert [r.url for r in details] == [
        'https://www.rightmove.co.uk/properties/123456789',
        'https://www.rightmove.co.uk/properties/987654321',
    ]
    assert details[0].meta['partials'][0]['address'] == '12 Acacia Avenue, London SW1A 1AA'
    assert len(pages) == 1
    assert pages[0].meta['cursor'].page_number == 2
    assert spider.listings_queued == 2
    assert spider.pages_processed == 1


def test_listing_seen_twice_is_queued_once():
    spider = RightmoveSpider()
    list(spider.parse_search_page(_search_response()))
    requests, _ = _split(list(spider.parse_search_page(_search_response(page_number=2))))
    assert [r for r in requests if r.callback == spider.parse_listing_detail] == []
    assert spider.listings_queued == 2
    assert len(spider.seen) == 2


CHANNEL_FRAGMENT_PAGE = """
<html><body>
  <div data-test="property-card">
    <a href="/properties/55#/?channel=RES_NEW"><h2 class="address">55 Station Road, Leeds LS1 4AP</h2></a>
    <div class="price">£275,000</div>
  </div>
  <div data-test="property-card">
    <a href="/properties/55"><h2 class="address">55 Station Road, Leeds LS1 4AP</h2></a>
    <div class="price">£275,000</div>
  </div>
</body></html>
"""


def test_channel_fragment_does_not_duplicate_listing():
    spider = RightmoveSpider()
    requests, _ = _split(list(spider.parse_search_page(_search_response(CHANNEL_FRAGMENT_PAGE))))
    details = [r for r in requests if r.callback == spider.parse_listing_detail]
    assert [r.url for r in details] == ['https://www.rightmove.co.uk/properties/55']
    assert details[0].meta['listing_id'] == '55'
    assert spider.listings_queued == 1


def test_basic_mode_emits_card_only_items():
    spider = RightmoveSpider(collect_details='false')
    requests, items = _split(list(spider.parse_search_page(_search_response())))
    assert len(items) == 2
    assert {item['extraction_method'] for item in items} == {'card-only'}
    assert items[1]['price']['amount'] == 1200000.0
    assert items[0]['is_new_home'] is True
    assert all(r.callback == spider.parse_search_page for r in requests)


def test_max_results_stops_pagination():
    spider = RightmoveSpider(max_results='1')
    requests, _ = _split(list(spider.parse_search_page(_search_response())))
    assert len(requests) == 1
    assert requests[0].callback == spider.parse_listing_detail
    assert spider.listings_queued == 1


def test_max_pages_stops_pagination():
    spider = RightmoveSpider(max_pages='1')
    requests, _ = _split(list(spider.parse_search_page(_search_response())))
    assert all(r.callback == spider.parse_listing_detail for r in requests)


def test_empty_search_page_stops():
    spider = RightmoveSpider()
    assert list(spider.parse_search_page(_search_response('<html><body></body></html>'))) == []
    assert spider.pages_processed == 1


def test_search_page_falls_back_to_embedded_results():
    body = """<html><body><script>window.jsonModel = {"properties": [
        {"id": 1111, "propertyUrl": "/properties/1111#/", "displayAddress": "1 High Street, Leeds"}
    ]};</script></body></html>"""
    spider = RightmoveSpider(collect_details='false', max_pages='1')
    _, items = _split(list(spider.parse_search_page(_search_response(body))))
    assert len(items) == 1
    assert items[0]['url'] == 'https://www.rightmove.co.uk/properties/1111'
    assert items[0]['address'] == '1 High Street, Leeds'


def test_detail_page_is_merged(card_partial):
    spider = RightmoveSpider()
    response = make_response(DETAIL_URL, DETAIL_PAGE, meta={'listing_id': '123456789', 'partials': [card_partial]})
    results = list(spider.parse_listing_detail(response))

    assert len(results) == 1
    item = results[0]
    assert item['extraction_method'] == 'json-ld+embedded'
    assert item['title'] == '3 bedroom semi-detached house for sale'
    assert item['address'] == '12 Acacia Avenue, London SW1A 1AA'
    assert item['property_type'] == 'Semi-Detached'
    assert item['bedrooms'] == 3
    assert item['price']['amount'] == 450000.0
    assert item['images'] == [
        'https://media.rightmove.co.uk/123.jpg',
        'https://media.rightmove.co.uk/a.jpg',
        'https://media.rightmove.co.uk/b.jpg',
    ]
    assert item['floorplans'] == ['https://media.rightmove.co.uk/fp.jpg']
    assert item['agent']['name'] == 'Acme Homes'
    assert item['is_new_home'] is True


def test_incomplete_detail_requests_api(card_partial):
    spider = RightmoveSpider()
    response = make_response(DETAIL_URL, EMPTY_DETAIL_PAGE,
                             meta={'listing_id': '123456789', 'partials': [card_partial]})
    results = list(spider.parse_listing_detail(response))

    assert len(results) == 1
    request = results[0]
    assert request.url == 'https://www.rightmove.co.uk/api/property/123456789?channel=NEW_HOME'
    assert request.callback == spider.parse_api_fallback
    assert request.errback == spider.api_fallback_failed
    assert request.meta['partials'][0] == card_partial


def test_api_response_completes_listing(card_partial):
    spider = RightmoveSpider()
    body = json.dumps({'property': {
        'displayAddress': '12 Acacia Avenue, London SW1A 1AA',
        'propertySubType': 'Semi-Detached',
        'bedrooms': 3,
        'text': {'pageTitle': '3 bedroom semi-detached house for sale'},
    }})
    response = make_json_response('https://www.rightmove.co.uk/api/property/123456789?channel=NEW_HOME', body,
                                  meta={'listing_id': '123456789', 'partials': [card_partial]})
    item = list(spider.parse_api_fallback(response))[0]
    assert item['extraction_method'] == 'api-fallback'
    assert item['title'] == '3 bedroom semi-detached house for sale'
    assert item['bedrooms'] == 3


def test_api_failure_still_emits_listing(card_partial):
    spider = RightmoveSpider()
    request = Request('https://www.rightmove.co.uk/api/property/123456789?channel=NEW_HOME',
                      meta={'listing_id': '123456789', 'partials': [card_partial]})
    failure = Failure(IgnoreRequest('404'))
    failure.request = request

    items = list(spider.api_fallback_failed(failure))
    assert len(items) == 1
    assert items[0]['address'] == '12 Acacia Avenue, London SW1A 1AA'
    assert items[0]['extraction_method'] == 'card-only'


def test_detail_failure_still_emits_listing(card_partial):
    spider = RightmoveSpider()
    request = spider.detail_request(card_partial)
    assert request.errback == spider.detail_failed

    failure = Failure(IgnoreRequest('500'))
    failure.request = request
    items = list(spider.detail_failed(failure))
    assert len(items) == 1
    assert items[0]['listing_id'] == '123456789'
    assert items[0]['address'] == '12 Acacia Avenue, London SW1A 1AA'
    assert items[0]['extraction_method'] == 'card-only'


def test_failed_listing_is_counted():
    spider = RightmoveSpider()
    spider.api_fallback_enabled = False
    partial = {'listing_id': '5', 'url': 'https://www.rightmove.co.uk/properties/5', 'extraction_method': 'card-only'}
    response = make_response('https://www.rightmove.co.uk/properties/5', EMPTY_DETAIL_PAGE,
                             meta={'listing_id': '5', 'partials': [partial]})
    item = list(spider.parse_listing_detail(response))[0]
    assert item['extraction_method'] == 'failed'
    assert item['url'] == 'https://www.rightmove.co.uk/properties/5'
    assert spider.failed_listings == 1


def test_bad_arguments_issue_no_requests():
    spider = RightmoveSpider(max_results='zero')
    assert spider.fatal_error
    assert list(spider.start_requests()) == []


def test_start_request_uses_search_url():
    spider = RightmoveSpider(search_location='Leeds', channel='BUY')
    requests = list(spider.start_requests())
    assert len(requests) == 1
    assert requests[0].url.startswith('https://www.rightmove.co.uk/property-for-sale/find.html?')
    assert 'REGION%5E1466' in requests[0].url
    assert spider.is_new_home_channel is False


@pytest.mark.parametrize('start_url, expected', [
    ('https://www.rightmove.co.uk/new-homes-for-sale/find.html?locationIdentifier=REGION%5E87490', True),
    ('https://www.rightmove.co.uk/property-for-sale/find.html?locationIdentifier=REGION%5E87490', False),
])
def test_new_home_channel_from_start_url(start_url, expected):
    assert RightmoveSpider(start_url=start_url).is_new_home_channel is expected
