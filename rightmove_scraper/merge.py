"""
合并同一房源的多个 partial，并做最后的清洗

合并规则：
- 普通字段先到先得，已有值的字段不会被后面的 partial 覆盖
- images / floorplans / key_features 取并集再去重
- details 和 agent 按键合并，已有的键优先
- price 例外：只有展示文本（如 POA）没有金额的价格，会被后面带金额的价格替换
"""

from datetime import datetime, timezone

from loguru import logger

from .extractors import API_METHOD, CARD_METHOD, EMBEDDED_METHOD, HTML_METHOD, JSON_LD_METHOD
from .items import ListingItem
from .normalizers import (
    BASE_URL,
    DEFAULT_CURRENCY,
    classify_property_type,
    clean_text,
    dedupe_ordered,
    listing_url,
    to_absolute_url,
    to_amount,
    to_int,
)

FAILED_METHOD = 'failed'
JSON_LD_EMBEDDED_METHOD = 'json-ld+embedded'

SCALAR_FIELDS = (
    'listing_id', 'url', 'title', 'address', 'bedrooms', 'bathrooms',
    'property_type', 'description', 'is_new_home',
)
LIST_FIELDS = ('images', 'floorplans', 'key_features')
URL_LIST_FIELDS = ('images', 'floorplans')
TEXT_FIELDS = ('title', 'address', 'description', 'property_type')
AGENT_FIELDS = ('name', 'phone', 'address', 'website')
REQUIRED_FIELDS = ('address', 'title')


def is_set(value):
    """None、空字符串、空列表、空字典都算没有值"""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return bool(value)
    return True


def _price_is_set(price):
    return isinstance(price, dict) and price.get('amount') is not None


def merge_partials(partials):
    """按顺序合并 partial，返回一个新的 dict，不修改输入"""
    merged = {field: None for field in SCALAR_FIELDS}
    for field in LIST_FIELDS:
        merged[field] = []
    merged['details'] = {}
    merged['price'] = None
    agent = {}
    display_only_price = None

    for partial in partials:
        if not partial:
            continue
        for field in SCALAR_FIELDS:
            if not is_set(merged[field]) and is_set(partial.get(field)):
                merged[field] = partial[field]

        for field in LIST_FIELDS:
            merged[field].extend(partial.get(field) or [])

        for key, value in (partial.get('details') or {}).items():
            if key not in merged['details'] and is_set(value):
                merged['details'][key] = value

        for key, value in (partial.get('agent') or {}).items():
            if not is_set(agent.get(key)) and is_set(value):
                agent[key] = value

        price = partial.get('price')
        if not _price_is_set(merged['price']) and _price_is_set(price):
            merged['price'] = dict(price)
        elif display_only_price is None and isinstance(price, dict) and price.get('display_text'):
            display_only_price = dict(price)

    if merged['price'] is None:
        merged['price'] = display_only_price
    for field in LIST_FIELDS:
        merged[field] = dedupe_ordered(merged[field])
    merged['agent'] = agent or None
    return merged


def _normalize_price(price):
    price = price if isinstance(price, dict) else {}
    return {
        'amount': to_amount(price.get('amount')),
        'currency': clean_text(price.get('currency')) or DEFAULT_CURRENCY,
        'display_text': clean_text(price.get('display_text')),
    }


def _normalize_agent(agent):
    if not isinstance(agent, dict):
        return None
    normalized = {field: clean_text(agent.get(field)) for field in AGENT_FIELDS}
    if normalized['website']:
        normalized['website'] = to_absolute_url(normalized['website'], BASE_URL)
    if not any(normalized.values()):
        return None
    return normalized


def normalize_record(record):
    """
    合并后的最终清洗，重复执行结果不变

    - 文本字段去多余空白
    - 物业类型为空时用 标题 + 描述 + 地址 重新分类
    - 图片链接转绝对地址并去重
    - 价格数值只保留有限数字，货币默认 GBP
    """
    normalized = dict(record)
    for field in TEXT_FIELDS:
        normalized[field] = clean_text(record.get(field))

    if normalized['property_type']:
        normalized['property_type'] = classify_property_type(normalized['property_type'])
    if not normalized['property_type']:
        combined = ' '.join(
            normalized[field] for field in ('title', 'description', 'address') if normalized[field]
        )
        normalized['property_type'] = classify_property_type(combined)

    for field in URL_LIST_FIELDS:
        normalized[field] = dedupe_ordered(to_absolute_url(url, BASE_URL) for url in record.get(field) or [])
    normalized['key_features'] = dedupe_ordered(record.get('key_features') or [])

    details = {}
    for key, value in (record.get('details') or {}).items():
        key, value = clean_text(key), clean_text(value)
        if key and value and key not in details:
            details[key] = value
    normalized['details'] = details

    normalized['price'] = _normalize_price(record.get('price'))
    normalized['bedrooms'] = to_int(record.get('bedrooms'))
    normalized['bathrooms'] = to_int(record.get('bathrooms'))
    normalized['agent'] = _normalize_agent(record.get('agent'))
    normalized['is_new_home'] = bool(record.get('is_new_home'))
    normalized['url'] = listing_url(record.get('url'), BASE_URL)
    normalized['listing_id'] = clean_text(record.get('listing_id'))
    return normalized


def is_complete(record):
    """地址和标题都有才算完整，否则需要 API 兜底"""
    return all(is_set(record.get(field)) for field in REQUIRED_FIELDS)


def is_failed(record):
    return not any(is_set(record.get(field)) for field in REQUIRED_FIELDS)


def resolve_extraction_method(partials, record):
    """根据参与合并的来源决定 extraction_method"""
    if is_failed(record):
        return FAILED_METHOD
    methods = {partial.get('extraction_method') for partial in partials if partial}
    if JSON_LD_METHOD in methods and EMBEDDED_METHOD in methods:
        return JSON_LD_EMBEDDED_METHOD
    for method in (JSON_LD_METHOD, EMBEDDED_METHOD, API_METHOD, HTML_METHOD):
        if method in methods:
            return method
    return CARD_METHOD


def finalize_listing(partials, scraped_at=None):
    """合并 + 清洗 + 打标记，失败的记录也照样返回"""
    partials = [partial for partial in partials if partial]
    record = normalize_record(merge_partials(partials))
    record['extraction_method'] = resolve_extraction_method(partials, record)
    record['scraped_at'] = scraped_at or datetime.now(timezone.utc).isoformat()

    if record['extraction_method'] == FAILED_METHOD:
        logger.warning(f"房源提取失败（没有地址和标题）: {record.get('url')}")

    return ListingItem(**{field: record.get(field) for field in ListingItem.fields})
