import pytest

from config import Config, ConfigError, parse_bool


def test_defaults():
    options = Config.crawl_options()
    assert options['max_results'] == Config.MAX_RESULTS
    assert options['max_pages'] == Config.MAX_PAGES
    assert options['collect_details'] is True
    assert options['channel'] == 'NEW_HOME'
    assert options['property_types'] == []


def test_string_arguments_are_coerced():
    options = Config.crawl_options(
        max_results='10', max_pages='2', collect_details='false', radius='1', channel=' buy ',
        search_location='  Leeds ', start_url='',
    )
    assert options['max_results'] == 10
    assert options['max_pages'] == 2
    assert options['collect_details'] is False
    assert options['radius'] == '1.0'
    assert options['channel'] == 'BUY'
    assert options['search_location'] == 'Leeds'
    assert options['start_url'] is None


@pytest.mark.parametrize('overrides', [
    {'max_results': '0'},
    {'max_pages': 'many'},
    {'min_price': '500000', 'max_price': '100000'},
    {'min_bedrooms': '4', 'max_bedrooms': '2'},
    {'radius': 'far'},
    {'property_types': 'castle'},
    {'channel': 'RENT'},
    {'collect_details': 'maybe'},
    {'unknown_option': '1'},
])
def test_invalid_arguments(overrides):
    with pytest.raises(ConfigError):
        Config.crawl_options(**overrides)


def test_parse_bool():
    assert parse_bool('Yes') is True
    assert parse_bool('0') is False
    assert parse_bool(None) is False


def test_default_config_is_valid():
    assert Config.validate() == []
