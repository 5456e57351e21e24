"""
根据搜索条件构造搜索页 URL
"""

from urllib.parse import urlencode, urlsplit

from config import Config

UK_REGIONS = {
    'london': 'REGION^87490',
    'manchester': 'REGION^904',
    'birmingham': 'REGION^60',
    'leeds': 'REGION^1466',
    'liverpool': 'REGION^1520',
    'bristol': 'REGION^239',
    'edinburgh': 'REGION^339',
    'glasgow': 'REGION^394',
    'cardiff': 'REGION^306',
    'belfast': 'REGION^5882',
}

SEARCH_PATHS = {
    'NEW_HOME': Config.NEW_HOMES_SEARCH_PATH,
    'BUY': Config.FOR_SALE_SEARCH_PATH,
}


class SearchUrlError(ValueError):
    """无法构造搜索 URL"""


def build_search_url(options, base_url=Config.BASE_URL):
    """
    构造搜索页 URL

    start_url 优先；否则用 location_identifier，或者按 search_location 查 UK_REGIONS，
    查不到就当作自由文本搜索，都没有时默认伦敦。
    """
    start_url = options.get('start_url')
    if start_url:
        parts = urlsplit(start_url)
        if parts.scheme not in ('http', 'https') or not parts.netloc:
            raise SearchUrlError(f"start_url 不是合法的网址: {start_url}")
        return start_url

    channel = (options.get('channel') or 'NEW_HOME').upper()
    if channel not in SEARCH_PATHS:
        raise SearchUrlError(f"不支持的 channel: {channel}")

    params = []
    location_identifier = options.get('location_identifier')
    search_location = options.get('search_location')
    if not location_identifier and search_location:
        location_identifier = UK_REGIONS.get(search_location.strip().lower())

    if location_identifier:
        params += [('locationIdentifier', location_identifier), ('useLocationIdentifier', 'true')]
    elif search_location:
        params += [('searchLocation', search_location), ('useLocationIdentifier', 'false')]
    else:
        params += [('locationIdentifier', UK_REGIONS['london']), ('useLocationIdentifier', 'true')]

    params.append(('radius', options.get('radius') or '0.0'))
    for key, param in (('min_price', 'minPrice'), ('max_price', 'maxPrice'),
                       ('min_bedrooms', 'minBedrooms'), ('max_bedrooms', 'maxBedrooms')):
        if options.get(key) is not None:
            params.append((param, str(options[key])))
    if options.get('property_types'):
        params.append(('propertyTypes', ','.join(options['property_types'])))
    params.append(('channel', channel))

    return f"{base_url}{SEARCH_PATHS[channel]}?{urlencode(params)}"


def build_api_url(listing_id, channel, template=Config.API_URL_TEMPLATE):
    """单个房源的 API 地址，详情页缺字段时兜底用"""
    if not listing_id:
        raise SearchUrlError("listing_id 为空，无法构造 API 地址")
    return template.format(listing_id=listing_id, channel=channel)
