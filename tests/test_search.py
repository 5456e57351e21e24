from urllib.parse import parse_qs, urlsplit

import pytest

from config import Config
from rightmove_scraper.search import SearchUrlError, build_api_url, build_search_url


def _query(url):
    return {key: values[0] for key, values in parse_qs(urlsplit(url).query).items()}


def test_default_search_is_london_new_homes():
    url = build_search_url(Config.crawl_options())
    assert url.startswith('https://www.rightmove.co.uk/new-homes-for-sale/find.html?')
    query = _query(url)
    assert query['locationIdentifier'] == 'REGION^87490'
    assert query['channel'] == 'NEW_HOME'
    assert query['radius'] == '0.0'


def test_filters_are_added():
    options = Config.crawl_options(
        search_location='Manchester', channel='buy', min_price='200000', max_price='500000',
        min_bedrooms='2', property_types='detached,flat',
    )
    url = build_search_url(options)
    assert '/property-for-sale/find.html' in url
    query = _query(url)
    assert query['locationIdentifier'] == 'REGION^904'
    assert query['minPrice'] == '200000'
    assert query['maxPrice'] == '500000'
    assert query['minBedrooms'] == '2'
    assert 'maxBedrooms' not in query
    assert query['propertyTypes'] == 'detached,flat'
    assert query['channel'] == 'BUY'


def test_unknown_location_is_free_text():
    query = _query(build_search_url(Config.crawl_options(search_location='Little Snoring')))
    assert query['searchLocation'] == 'Little Snoring'
    assert query['useLocationIdentifier'] == 'false'


def test_start_url_wins():
    start = 'https://www.rightmove.co.uk/new-homes-for-sale/find.html?locationIdentifier=REGION%5E1466'
    assert build_search_url(Config.crawl_options(start_url=start, search_location='Bristol')) == start


def test_bad_start_url():
    with pytest.raises(SearchUrlError):
        build_search_url({'start_url': 'not a url'})


def test_bad_channel():
    with pytest.raises(SearchUrlError):
        build_search_url({'channel': 'RENT'})


def test_build_api_url():
    assert build_api_url('123', 'NEW_HOME') == 'https://www.rightmove.co.uk/api/property/123?channel=NEW_HOME'
    with pytest.raises(SearchUrlError):
        build_api_url(None, 'NEW_HOME')
