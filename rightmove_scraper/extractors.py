"""
字段提取

每个字段先从结构化数据（JSON-LD / 内嵌 JSON / API）里取，取不到再按选择器列表从 HTML 里取。
选择器列表按优先级排好，由 first_match 统一处理：第一个非空且通过合理性检查的结果胜出。

每一轮提取（卡片、JSON-LD、内嵌 JSON、HTML、API）都生成一个 partial dict，
最后交给 merge.finalize_listing 合并。
"""

import re

from loguru import logger

from .locators import find_embedded_listing, find_linked_data_listing, find_listing_payload
from .normalizers import (
    BASE_URL,
    DEFAULT_CURRENCY,
    classify_property_type,
    clean_text,
    dedupe_ordered,
    detect_currency,
    has_currency,
    listing_url,
    parse_price,
    to_absolute_url,
    to_amount,
    to_int,
)

CARD_METHOD = 'card-only'
JSON_LD_METHOD = 'json-ld'
EMBEDDED_METHOD = 'embedded-json'
HTML_METHOD = 'html-parse'
API_METHOD = 'api-fallback'

LISTING_ID_PATTERNS = (
    re.compile(r'/properties/(\d+)', re.I),
    re.compile(r'propertyId[=:](\d+)', re.I),
    re.compile(r'#properties[=/](\d+)', re.I),
)
BEDROOM_PATTERN = re.compile(r'(\d+)\s*bed(?:room)?s?\b', re.I)
BATHROOM_PATTERN = re.compile(r'(\d+)\s*bath(?:room)?s?\b', re.I)
_html_tags = re.compile(r'<[^>]*>')

# ==================== 选择器规则表 ====================

CARD_SELECTORS = ('[class*="property-card"]', '[data-test="property-card"]', '[data-testid*="propertyCard"]')
CARD_FALLBACK_XPATH = (
    '//a[contains(@href, "/properties/")]'
    '/ancestor::*[self::article or self::section or self::li'
    ' or (self::div and contains(@class, "card"))][1]'
)
CARD_LINK_SELECTORS = ('a[href*="/properties/"]::attr(href)', 'a[href*="propertyId"]::attr(href)')
CARD_ADDRESS_SELECTORS = ('[class*="address"]', '[class*="title"]', '[data-test*="address"]', 'h2', 'h3')
CARD_IMAGE_SELECTORS = ('img', '[class*="image"]')
CARD_AGENT_SELECTORS = ('[class*="agent"]', '[class*="developer"]')
CARD_FEATURE_SELECTOR = '[class*="feature"], [class*="tag"], [class*="badge"]'
CARD_TYPE_SELECTORS = ('[class*="propertyType"]', '[class*="property-type"]', '[data-test*="property-type"]')

PRICE_SELECTORS = ('[class*="price"]', '[class*="Price"]', '[data-test*="price"]', '[data-testid*="price"]')
TITLE_SELECTORS = ('h1', '[class*="title"] h1', 'meta[property="og:title"]::attr(content)', 'title')
ADDRESS_SELECTORS = (
    '[itemprop="streetAddress"]',
    'h1[class*="address"]',
    '[class*="address"]',
    '[data-test*="address"]',
    'address',
)
DESCRIPTION_SELECTORS = (
    '[class*="description"]',
    '[itemprop="description"]',
    'meta[name="description"]::attr(content)',
    'meta[property="og:description"]::attr(content)',
)
PROPERTY_TYPE_SELECTORS = (
    '[data-testid*="property-type"]',
    '[class*="propertyType"]',
    '[class*="property-type"]',
)
FEATURE_SELECTOR = (
    '[class*="key-feature"] li, [class*="keyFeature"] li, [class*="bullet"] li, [data-test*="feature"] li'
)
GALLERY_IMAGE_SELECTOR = (
    '[class*="gallery"] img, [class*="Gallery"] img, [class*="carousel"] img, [data-test*="image"] img'
)
FLOORPLAN_IMAGE_SELECTOR = '[class*="floorplan"] img, [class*="floorPlan"] img, img[src*="_FLP_"]'
AGENT_CONTAINER_SELECTORS = (
    '[class*="agent"]',
    '[class*="Agent"]',
    '[class*="branch"]',
    '[class*="developer"]',
    '[data-test*="agent"]',
)
AGENT_NAME_SELECTORS = ('h2', 'h3', 'h4', '[class*="name"]', 'strong', 'a')
AGENT_ADDRESS_SELECTORS = ('address', '[class*="address"]')
AGENT_WEBSITE_SELECTORS = ('a[href]:not([href^="tel:"]):not([href^="mailto:"])::attr(href)',)
NEW_HOME_SELECTORS = ('[class*="new-home"]', '[class*="newHome"]', '[data-test*="new-home"]')

# ==================== 结构化数据的键 ====================

PAYLOAD_TITLE_KEYS = ('title', 'name', 'localizedTitle', 'propertyTitle')
PAYLOAD_ADDRESS_KEYS = ('displayAddress', 'fullAddress', 'address', 'streetAddress')
PAYLOAD_DESCRIPTION_KEYS = ('description', 'summary', 'shortDescription')
PAYLOAD_BEDROOM_KEYS = ('bedrooms', 'beds', 'bedroomCount', 'numberOfBedrooms')
PAYLOAD_BATHROOM_KEYS = ('bathrooms', 'baths', 'bathroomCount', 'numberOfBathroomsTotal')
PAYLOAD_TYPE_KEYS = ('propertySubType', 'propertyType', 'propertyTypeFullDescription')
PAYLOAD_PRICE_KEYS = ('prices', 'price', 'priceAmount')
PAYLOAD_IMAGE_KEYS = ('images', 'image', 'photos', 'propertyImages')
PAYLOAD_FLOORPLAN_KEYS = ('floorplans', 'floorPlans', 'floorplan')
PAYLOAD_FEATURE_KEYS = ('keyFeatures', 'features', 'amenityFeature')
PAYLOAD_NEW_HOME_KEYS = ('isNewHome', 'newHome', 'development')
PAYLOAD_AGENT_KEYS = ('customer', 'agent', 'branch', 'developer', 'seller', 'offeredBy')
AGENT_NAME_KEYS = ('branchDisplayName', 'brandTradingName', 'companyName', 'branchName', 'displayName', 'name')
AGENT_PHONE_KEYS = ('contactTelephone', 'telephone', 'phone', 'mobile', 'phoneNumber')
AGENT_ADDRESS_KEYS = ('displayAddress', 'address')
AGENT_WEBSITE_KEYS = ('customerProfileUrl', 'branchLandingPage', 'website', 'url')
URL_KEYS = ('url', 'src', 'srcUrl', 'contentUrl')


# ==================== 通用工具 ====================

def node_text(node):
    """节点的可见文本（不包括 script / style）"""
    if isinstance(node.root, str):
        return clean_text(node.get())
    parts = node.xpath('.//text()[not(ancestor::script) and not(ancestor::style)]').getall()
    return clean_text(' '.join(parts))


def first_match(root, selectors, getter=node_text, accept=None):
    """
    按顺序尝试选择器，返回第一个非空且通过 accept 检查的值

    每个选择器只看第一个命中的节点。
    """
    if root is None:
        return None
    for css in selectors:
        nodes = root.css(css)
        if not nodes:
            continue
        value = getter(nodes[0])
        if value and (accept is None or accept(value)):
            return value
    return None


def plausible_address(text):
    return bool(text) and len(text) >= 5 and not has_currency(text)


def plausible_agent_name(text):
    return bool(text) and 2 < len(text) <= 120


def plausible_feature(text):
    return bool(text) and 2 < len(text) < 100


def image_src(node):
    for attr in ('src', 'data-src', 'data-lazy'):
        value = node.attrib.get(attr)
        if value and value.strip():
            return value.strip()
    return None


def strip_html(value):
    if not isinstance(value, str):
        return value
    return clean_text(_html_tags.sub(' ', value))


def _first_value(payload, keys):
    for key in keys:
        value = payload.get(key)
        if value not in (None, '', [], {}):
            return value
    return None


def _compact(partial):
    """去掉空字段，只剩来源标记时返回 None"""
    compacted = {}
    for key, value in partial.items():
        if value is None or value == '' or value == [] or value == {}:
            continue
        compacted[key] = value
    if set(compacted) <= {'extraction_method', 'listing_id', 'url'}:
        return None
    return compacted


# ==================== 身份 ====================

def extract_listing_id(url):
    """从 URL 里取房源 ID，按 /properties/、propertyId=、#properties/ 的顺序"""
    if not url:
        return None
    for pattern in LISTING_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


# ==================== 价格 ====================

def _display_only_price(text):
    text = clean_text(text)
    if not text:
        return None
    return {'amount': None, 'currency': detect_currency(text), 'display_text': text}


def price_from_value(value):
    """价格可能是数字、字符串或者对象"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = to_amount(value)
        if amount is None:
            return None
        return {'amount': amount, 'currency': DEFAULT_CURRENCY, 'display_text': None}
    if isinstance(value, str):
        return parse_price(value) or _display_only_price(value)
    if isinstance(value, list):
        for entry in value:
            price = price_from_value(entry)
            if price:
                return price
        return None
    if not isinstance(value, dict):
        return None

    display = _first_value(value, ('displayPrice', 'primaryPrice', 'pretty', 'displayText'))
    if display is None and isinstance(value.get('displayPrices'), list) and value['displayPrices']:
        first = value['displayPrices'][0]
        display = first.get('displayPrice') if isinstance(first, dict) else first
    display = clean_text(display) if isinstance(display, str) else None

    amount = to_amount(_first_value(value, ('amount', 'value', 'price', 'lowPrice')))
    currency = _first_value(value, ('currencyCode', 'currency', 'priceCurrency'))
    if amount is None and display:
        parsed = parse_price(display)
        if parsed:
            amount = parsed['amount']
            currency = currency or parsed['currency']
    if amount is None and not display:
        return None
    return {
        'amount': amount,
        'currency': clean_text(currency) or detect_currency(display),
        'display_text': display,
    }


def payload_price(payload):
    for key in PAYLOAD_PRICE_KEYS:
        if key in payload:
            price = price_from_value(payload[key])
            if price:
                return price
    offers = payload.get('offers')
    if isinstance(offers, list):
        offers = offers[0] if offers else None
    if isinstance(offers, dict):
        return price_from_value(offers)
    return None


def html_price(root):
    text = first_match(root, PRICE_SELECTORS, accept=has_currency)
    if text:
        return parse_price(text) or _display_only_price(text)
    return None


# ==================== 地址 / 标题 / 描述 ====================

def _address_from_value(value):
    if isinstance(value, str):
        return clean_text(value)
    if isinstance(value, dict):
        display = _first_value(value, ('displayAddress', 'fullAddress'))
        if display:
            return clean_text(display)
        parts = [value.get(k) for k in ('streetAddress', 'addressLocality', 'addressRegion', 'postalCode')]
        return clean_text(', '.join(str(p) for p in parts if p))
    return None


def payload_address(payload):
    for key in PAYLOAD_ADDRESS_KEYS:
        address = _address_from_value(payload.get(key))
        if plausible_address(address):
            return address
    return None


def payload_title(payload):
    title = _first_value(payload, PAYLOAD_TITLE_KEYS)
    if isinstance(title, str):
        return clean_text(title)
    text = payload.get('text')
    if isinstance(text, dict):
        return clean_text(_first_value(text, ('pageTitle', 'propertyPhrase')))
    return None


def payload_description(payload):
    description = _first_value(payload, PAYLOAD_DESCRIPTION_KEYS)
    if not isinstance(description, str):
        text = payload.get('text')
        description = text.get('description') if isinstance(text, dict) else None
    return strip_html(description) if isinstance(description, str) else None


# ==================== 房间数 ====================

def rooms_from_text(text):
    """从可见文本里匹配 "3 bed" / "2 bathroom" """
    bedrooms = bathrooms = None
    if text:
        bed_match = BEDROOM_PATTERN.search(text)
        bath_match = BATHROOM_PATTERN.search(text)
        if bed_match:
            bedrooms = int(bed_match.group(1))
        if bath_match:
            bathrooms = int(bath_match.group(1))
    return bedrooms, bathrooms


def payload_rooms(payload):
    bedrooms = to_int(_first_value(payload, PAYLOAD_BEDROOM_KEYS))
    bathrooms = to_int(_first_value(payload, PAYLOAD_BATHROOM_KEYS))
    return bedrooms, bathrooms


# ==================== 物业类型 ====================

def payload_property_type(payload):
    for key in PAYLOAD_TYPE_KEYS:
        value = payload.get(key)
        if isinstance(value, str):
            property_type = classify_property_type(value)
            if property_type:
                return property_type
    for item in payload.get('infoReelItems') or []:
        if isinstance(item, dict) and str(item.get('type', '')).upper() == 'PROPERTY_TYPE':
            property_type = classify_property_type(item.get('primaryText'))
            if property_type:
                return property_type
    return None


def html_property_type(root):
    return classify_property_type(first_match(root, PROPERTY_TYPE_SELECTORS))


# ==================== 图片 / 户型图 ====================

def collect_urls(value):
    """图片字段可能是字符串、对象（url / src）或者它们的列表"""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        urls = []
        for entry in value:
            urls.extend(collect_urls(entry))
        return urls
    if isinstance(value, dict):
        url = _first_value(value, URL_KEYS)
        if isinstance(url, str):
            return [url]
        # propertyImages: {"images": [...], "mainImageSrc": "..."}
        nested = collect_urls(value.get('images'))
        return nested or collect_urls(value.get('mainImageSrc'))
    return []


def absolute_urls(urls, base=BASE_URL):
    return dedupe_ordered(to_absolute_url(url, base) for url in urls)


def payload_media(payload, base=BASE_URL):
    images = []
    for key in PAYLOAD_IMAGE_KEYS:
        images.extend(collect_urls(payload.get(key)))
    floorplans = []
    for key in PAYLOAD_FLOORPLAN_KEYS:
        floorplans.extend(collect_urls(payload.get(key)))
    return absolute_urls(images, base), absolute_urls(floorplans, base)


def html_media(root, base=BASE_URL):
    images = [image_src(node) for node in root.css(GALLERY_IMAGE_SELECTOR)]
    og_image = root.css('meta[property="og:image"]::attr(content)').get()
    if og_image:
        images.append(og_image)
    floorplans = [image_src(node) for node in root.css(FLOORPLAN_IMAGE_SELECTOR)]
    floorplans = absolute_urls([url for url in floorplans if url], base)
    images = [url for url in absolute_urls([url for url in images if url], base) if url not in floorplans]
    return images, floorplans


# ==================== 中介 ====================

def _agent_or_none(agent):
    if any(agent.values()):
        return agent
    return None


def _phone_from_href(href):
    if not href:
        return None
    return clean_text(href.replace('tel:', '', 1))


def payload_agent(payload, base=BASE_URL):
    """结构化数据里的中介 / 开发商对象"""
    node = None
    for key in PAYLOAD_AGENT_KEYS:
        candidate = payload.get(key)
        if isinstance(candidate, list):
            candidate = candidate[0] if candidate else None
        if isinstance(candidate, dict) and _first_value(candidate, AGENT_NAME_KEYS):
            node = candidate
            break

    agent = {'name': None, 'phone': None, 'address': None, 'website': None}
    if node is not None:
        name = clean_text(_first_value(node, AGENT_NAME_KEYS))
        agent['name'] = name if plausible_agent_name(name) else None
        agent['phone'] = clean_text(_first_value(node, AGENT_PHONE_KEYS))
        agent['address'] = _address_from_value(_first_value(node, AGENT_ADDRESS_KEYS))
        website = _first_value(node, AGENT_WEBSITE_KEYS)
        agent['website'] = to_absolute_url(website, base) if isinstance(website, str) else None
    else:
        name = clean_text(payload.get('agentName'))
        agent['name'] = name if plausible_agent_name(name) else None
        agent['phone'] = clean_text(payload.get('agentPhone'))

    if not agent['phone']:
        contact = payload.get('contactInfo')
        numbers = contact.get('telephoneNumbers') if isinstance(contact, dict) else None
        if isinstance(numbers, dict):
            agent['phone'] = clean_text(_first_value(numbers, ('localNumber', 'internationalNumber')))

    if not agent['name'] and not agent['phone']:
        return None
    return _agent_or_none(agent)


def html_agent(root, base=BASE_URL):
    """HTML 里的中介信息，电话取同一区域（或上一层）里的 tel: 链接"""
    for css in AGENT_CONTAINER_SELECTORS:
        for container in root.css(css):
            name = first_match(container, AGENT_NAME_SELECTORS, accept=plausible_agent_name)
            if not name:
                text = node_text(container)
                name = text if plausible_agent_name(text) else None
            if not name:
                continue

            phone = container.css('a[href^="tel:"]::attr(href)').get()
            if not phone:
                phone = container.xpath('..').css('a[href^="tel:"]::attr(href)').get()
            website = first_match(container, AGENT_WEBSITE_SELECTORS)
            return _agent_or_none({
                'name': name,
                'phone': _phone_from_href(phone),
                'address': first_match(container, AGENT_ADDRESS_SELECTORS, accept=plausible_address),
                'website': to_absolute_url(website, base),
            })
    return None


# ==================== 亮点 / 详情表 ====================

def payload_features(payload):
    features = []
    for key in PAYLOAD_FEATURE_KEYS:
        for entry in payload.get(key) or []:
            if isinstance(entry, dict):
                entry = _first_value(entry, ('text', 'description', 'name', 'value'))
            text = clean_text(entry) if isinstance(entry, str) else None
            if plausible_feature(text):
                features.append(text)
    return dedupe_ordered(features)


def payload_details(payload):
    details = {}
    for item in payload.get('infoReelItems') or []:
        if not isinstance(item, dict):
            continue
        key = clean_text(item.get('title'))
        value = clean_text(item.get('primaryText'))
        if key and value:
            details.setdefault(key.title(), value)
    tenure = payload.get('tenure')
    if isinstance(tenure, dict):
        tenure = tenure.get('tenureType')
    if isinstance(tenure, str) and clean_text(tenure):
        details.setdefault('Tenure', clean_text(tenure).title())
    extra = payload.get('details')
    if isinstance(extra, dict):
        for key, value in extra.items():
            if isinstance(value, (str, int, float)) and clean_text(key) and clean_text(value):
                details.setdefault(clean_text(key), clean_text(value))
    return details


def html_features(root):
    features = [node_text(node) for node in root.css(FEATURE_SELECTOR)]
    return dedupe_ordered(text for text in features if plausible_feature(text))


def html_details(root):
    details = {}
    for term in root.css('dl dt'):
        key = node_text(term)
        definition = term.xpath('following-sibling::dd[1]')
        value = node_text(definition[0]) if definition else None
        if key and value:
            details.setdefault(key.rstrip(':').strip(), value)
    return details


def payload_is_new_home(payload):
    for key in PAYLOAD_NEW_HOME_KEYS:
        if key in payload and isinstance(payload[key], (bool, int, str)):
            return bool(payload[key]) and str(payload[key]).lower() not in ('false', '0')
    customer = payload.get('customer')
    if isinstance(customer, dict) and customer.get('isNewHomeDeveloper'):
        return True
    return None


# ==================== 各轮提取 ====================

def card_partial(card, is_new_home=None, base=BASE_URL):
    """搜索页的一张房源卡片 -> partial，没有房源链接的返回 None"""
    href = first_match(card, CARD_LINK_SELECTORS)
    listing_id = extract_listing_id(to_absolute_url(href, base))
    url = listing_url(href, base)
    if not listing_id or not url:
        return None

    price = html_price(card)
    if price is None:
        price = _display_only_price(first_match(card, PRICE_SELECTORS))

    bedrooms, bathrooms = rooms_from_text(node_text(card))
    image = first_match(card, CARD_IMAGE_SELECTORS, getter=image_src)
    agent_name = first_match(card, CARD_AGENT_SELECTORS, accept=plausible_agent_name)

    features = []
    for node in card.css(CARD_FEATURE_SELECTOR):
        text = node_text(node)
        if text and 1 < len(text) < 100:
            features.append(text)

    badge = first_match(card, NEW_HOME_SELECTORS)
    return {
        'listing_id': listing_id,
        'url': url,
        'address': first_match(card, CARD_ADDRESS_SELECTORS, accept=plausible_address),
        'price': price,
        'bedrooms': bedrooms,
        'bathrooms': bathrooms,
        'property_type': classify_property_type(first_match(card, CARD_TYPE_SELECTORS)),
        'images': absolute_urls([image], base) if image else [],
        'agent': {'name': agent_name, 'phone': None, 'address': None, 'website': None} if agent_name else None,
        'key_features': dedupe_ordered(features),
        'is_new_home': True if (is_new_home or badge) else None,
        'extraction_method': CARD_METHOD,
    }


def select_cards(root):
    """搜索页上的房源卡片，找不到标准卡片时退回到包含房源链接的容器"""
    cards = list(root.css(', '.join(CARD_SELECTORS)))
    if not cards:
        return list(root.xpath(CARD_FALLBACK_XPATH))
    # 卡片里面的元素也可能命中选择器，只保留最外层
    elements = {card.root for card in cards}
    return [card for card in cards if not any(parent in elements for parent in card.root.iterancestors())]


def search_result_partial(entry, is_new_home=None, base=BASE_URL):
    """搜索页内嵌 JSON 里的一条房源 -> partial"""
    raw_url = to_absolute_url(entry.get('propertyUrl'), base)
    url = listing_url(raw_url, base)
    listing_id = extract_listing_id(raw_url) or (str(entry['id']) if entry.get('id') else None)
    if not listing_id or not url:
        return None
    partial = payload_partial(entry, CARD_METHOD, base) or {'extraction_method': CARD_METHOD}
    partial['listing_id'] = listing_id
    partial['url'] = url
    if is_new_home and not partial.get('is_new_home'):
        partial['is_new_home'] = True
    return partial


def payload_partial(payload, method, base=BASE_URL):
    """结构化房源对象 -> partial"""
    if not isinstance(payload, dict):
        return None
    bedrooms, bathrooms = payload_rooms(payload)
    images, floorplans = payload_media(payload, base)
    return _compact({
        'title': payload_title(payload),
        'address': payload_address(payload),
        'price': payload_price(payload),
        'bedrooms': bedrooms,
        'bathrooms': bathrooms,
        'property_type': payload_property_type(payload),
        'description': payload_description(payload),
        'key_features': payload_features(payload),
        'details': payload_details(payload),
        'images': images,
        'floorplans': floorplans,
        'agent': payload_agent(payload, base),
        'is_new_home': payload_is_new_home(payload),
        'extraction_method': method,
    })


def linked_data_partial(html, base=BASE_URL):
    """JSON-LD 只用来取标题、描述、图片和价格"""
    entry = find_linked_data_listing(html)
    if entry is None:
        return None
    images, _ = payload_media(entry, base)
    return _compact({
        'title': payload_title(entry),
        'description': payload_description(entry),
        'images': images,
        'price': payload_price(entry),
        'extraction_method': JSON_LD_METHOD,
    })


def embedded_partial(html, base=BASE_URL):
    payload = find_embedded_listing(html)
    if payload is None:
        return None
    return payload_partial(payload, EMBEDDED_METHOD, base)


def api_partial(data, base=BASE_URL):
    payload = find_listing_payload(data)
    if payload is None:
        logger.debug("API 返回里没有找到房源对象")
        return None
    return payload_partial(payload, API_METHOD, base)


def html_partial(root, base=BASE_URL):
    """详情页 HTML 兜底提取"""
    main = root.css('main') or root.css('body') or [root]
    bedrooms, bathrooms = rooms_from_text(node_text(main[0]))
    images, floorplans = html_media(root, base)
    title = first_match(root, TITLE_SELECTORS)
    return _compact({
        'title': title,
        'address': first_match(root, ADDRESS_SELECTORS, accept=plausible_address),
        'price': html_price(root),
        'bedrooms': bedrooms,
        'bathrooms': bathrooms,
        'property_type': html_property_type(root),
        'description': first_match(root, DESCRIPTION_SELECTORS),
        'key_features': html_features(root),
        'details': html_details(root),
        'images': images,
        'floorplans': floorplans,
        'agent': html_agent(root, base),
        'is_new_home': True if first_match(root, NEW_HOME_SELECTORS) else None,
        'extraction_method': HTML_METHOD,
    })
