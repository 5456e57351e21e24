"""
在页面里定位结构化数据

两种来源：
1. JSON-LD (<script type="application/ld+json">)
2. 页面内嵌的应用状态 JSON（window.PAGE_MODEL、__NEXT_DATA__ 等）

内嵌 JSON 的结构经常变，所以先按已知路径找，找不到再做有限深度的广度优先搜索，
按"长得像房源"的键组合来判断。
"""

import json
from collections import deque

from loguru import logger
from parsel import Selector

LINKED_DATA_TYPES = {
    'Product', 'RealEstateListing', 'Apartment', 'House', 'SingleFamilyResidence', 'Residence',
}

# 页面里出现过的全局变量
EMBEDDED_MARKERS = (
    'window.PAGE_MODEL',
    'window.jsonModel',
    'window.__PRELOADED_STATE__',
    'window.__INITIAL_STATE__',
)
EMBEDDED_SCRIPT_IDS = ('__NEXT_DATA__',)

ADDRESS_KEYS = {'address', 'displayAddress', 'fullAddress', 'streetAddress'}
BEDROOM_KEYS = {'bedrooms', 'beds', 'bedroomCount', 'numberOfBedrooms', 'numberOfRooms'}
PROPERTY_TYPE_KEYS = {'propertyType', 'propertySubType', 'propertyTypeFullDescription'}
PRICE_KEYS = {'price', 'prices', 'priceAmount'}

# 已知的房源对象路径，按顺序尝试
KNOWN_LISTING_PATHS = (
    ('propertyData',),
    ('props', 'pageProps', 'propertyData'),
    ('props', 'pageProps', 'pageData', 'data', 'listingData'),
    ('property',),
)

MAX_SEARCH_DEPTH = 6

_decoder = json.JSONDecoder()


def _load_json(raw, source):
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.debug(f"{source} JSON 解析失败: {e}")
        return None


def _as_selector(html):
    if isinstance(html, Selector):
        return html
    return Selector(text=html or '<html></html>')


def extract_json_ld(html):
    """取出页面里所有 JSON-LD 对象（数组和 @graph 会展开）"""
    if not html:
        return []
    selector = _as_selector(html)
    entries = []
    for raw in selector.xpath('//script[@type="application/ld+json"]/text()').getall():
        parsed = _load_json(raw.strip(), 'JSON-LD')
        if parsed is None:
            continue
        for entry in parsed if isinstance(parsed, list) else [parsed]:
            if not isinstance(entry, dict):
                continue
            graph = entry.get('@graph')
            if isinstance(graph, list):
                entries.extend(e for e in graph if isinstance(e, dict))
            else:
                entries.append(entry)
    return entries


def _type_names(entry):
    declared = entry.get('@type')
    if isinstance(declared, str):
        return {declared}
    if isinstance(declared, list):
        return {t for t in declared if isinstance(t, str)}
    return set()


def find_linked_data_listing(html):
    """找第一个类型在 LINKED_DATA_TYPES 里的 JSON-LD 对象"""
    for entry in extract_json_ld(html):
        if _type_names(entry) & LINKED_DATA_TYPES:
            return entry
    return None


def _decode_after(text, start):
    """从 start 之后第一个 { 或 [ 开始解码一个完整的 JSON 值"""
    for index in range(start, min(len(text), start + 200)):
        char = text[index]
        if char in '{[':
            try:
                value, _ = _decoder.raw_decode(text, index)
                return value
            except ValueError as e:
                logger.debug(f"内嵌 JSON 解析失败: {e}")
                return None
        if char == ';':
            break
    return None


def extract_embedded_blobs(html):
    """取出页面内嵌的应用状态 JSON"""
    if not html:
        return []
    text = html if isinstance(html, str) else html.get()
    blobs = []

    for marker in EMBEDDED_MARKERS:
        position = text.find(marker)
        while position != -1:
            equals = text.find('=', position + len(marker))
            if equals != -1 and equals - position - len(marker) < 5:
                blob = _decode_after(text, equals + 1)
                if blob is not None:
                    blobs.append(blob)
            position = text.find(marker, position + len(marker))

    selector = _as_selector(html)
    for script_id in EMBEDDED_SCRIPT_IDS:
        raw = selector.xpath(f'//script[@id="{script_id}"]/text()').get()
        if raw:
            blob = _load_json(raw.strip(), script_id)
            if blob is not None:
                blobs.append(blob)

    return blobs


def looks_like_listing(node):
    """必须有地址类的键，再加上卧室数 / 物业类型 / 价格中的至少一个"""
    if not isinstance(node, dict):
        return False
    keys = set(node.keys())
    if not keys & ADDRESS_KEYS:
        return False
    return bool(keys & (BEDROOM_KEYS | PROPERTY_TYPE_KEYS | PRICE_KEYS))


def _children(node):
    if isinstance(node, dict):
        return list(node.values())
    if isinstance(node, list):
        return list(node)
    return []


def breadth_first_find(root, predicate, max_depth=MAX_SEARCH_DEPTH):
    """
    有限深度的广度优先搜索，返回第一个满足 predicate 的节点

    用 id() 记录已访问的对象，避免循环引用。浅层的优先。
    """
    seen = set()
    queue = deque([(root, 0)])
    while queue:
        node, depth = queue.popleft()
        if not isinstance(node, (dict, list)) or id(node) in seen:
            continue
        seen.add(id(node))
        if predicate(node):
            return node
        if depth >= max_depth:
            continue
        for child in _children(node):
            queue.append((child, depth + 1))
    return None


def _follow_path(blob, path):
    node = blob
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def find_listing_payload(blob, max_depth=MAX_SEARCH_DEPTH):
    """先按已知路径找房源对象，找不到再广度优先搜索"""
    if isinstance(blob, dict):
        for path in KNOWN_LISTING_PATHS:
            node = _follow_path(blob, path)
            if looks_like_listing(node):
                return node
    return breadth_first_find(blob, looks_like_listing, max_depth=max_depth)


def find_embedded_listing(html):
    for blob in extract_embedded_blobs(html):
        payload = find_listing_payload(blob)
        if payload is not None:
            return payload
    return None


def _is_result_list(node):
    if not isinstance(node, list) or not node:
        return False
    return any(isinstance(entry, dict) and 'id' in entry and 'propertyUrl' in entry for entry in node)


def find_search_results(html):
    """搜索页内嵌 JSON 里的房源列表（HTML 里找不到卡片时用）"""
    for blob in extract_embedded_blobs(html):
        results = breadth_first_find(blob, _is_result_list)
        if results:
            return [entry for entry in results if isinstance(entry, dict)]
    return []
