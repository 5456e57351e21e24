"""
基础清洗函数：文本、价格、URL、物业类型

这些函数都是纯函数，不依赖 Scrapy，可以单独测试。
"""

import math
import re
from urllib.parse import urlsplit

from w3lib.url import canonicalize_url

BASE_URL = 'https://www.rightmove.co.uk'
DEFAULT_CURRENCY = 'GBP'

_whitespace = re.compile(r'\s+')
_scheme = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*:')
_number = re.compile(r'(\d+(?:\.\d+)?)')
_strip_chars = re.compile(r'[£€$,\s]')
_million = re.compile(r'million|\d\s*m\b', re.I)
_thousand = re.compile(r'\d\s*k\b', re.I)
_int_token = re.compile(r'-?\d+(?:\.\d+)?')

CURRENCY_SYMBOLS = {
    '£': 'GBP',
    '€': 'EUR',
    '$': 'USD',
}
CURRENCY_MARKERS = re.compile(r'[£€$]|\b(?:GBP|EUR|USD)\b')

# 顺序很重要：具体的放前面，否则 "Semi-Detached" 会先命中 "detached"
PROPERTY_TYPE_RULES = (
    ('Semi-Detached', re.compile(r'semi[\s\-]*detached', re.I)),
    ('End of Terrace', re.compile(r'end[\s\-]+(?:of[\s\-]+)?terrace', re.I)),
    ('Detached', re.compile(r'\bdetached\b', re.I)),
    ('Terraced', re.compile(r'\bterrace[ds]?\b|\btown\s*house\b', re.I)),
    ('Penthouse', re.compile(r'penthouse', re.I)),
    ('Maisonette', re.compile(r'maisonette', re.I)),
    ('Studio', re.compile(r'\bstudio\b', re.I)),
    ('Duplex', re.compile(r'duplex', re.I)),
    ('Bungalow', re.compile(r'bungalow', re.I)),
    ('Cottage', re.compile(r'\bcottage\b', re.I)),
    ('Park Home', re.compile(r'park[\s\-]*home|mobile[\s\-]*home', re.I)),
    ('Flat', re.compile(r'\bflats?\b|\bapartments?\b', re.I)),
    ('Land', re.compile(r'\bland\b|\bplots?\b', re.I)),
    ('House', re.compile(r'\bhouses?\b', re.I)),
)
PROPERTY_TYPES = tuple(label for label, _ in PROPERTY_TYPE_RULES)


def clean_text(value):
    """合并连续空白并去掉首尾空格，空字符串返回 None"""
    if value is None:
        return None
    if not isinstance(value, str):
        value = str(value)
    cleaned = _whitespace.sub(' ', value).strip()
    return cleaned or None


def to_absolute_url(url, base=BASE_URL):
    """
    相对链接转绝对链接

    注意参数顺序是 (url, base)，base 可以省略，默认是站点首页

    - 已经带协议的原样返回
    - // 开头的补 https:
    - / 开头或者裸路径的拼上站点域名
    """
    if not url:
        return None
    url = url.strip()
    if not url:
        return None
    if url.startswith('//'):
        return f'https:{url}'
    if _scheme.match(url):
        return url
    parts = urlsplit(base)
    origin = f'{parts.scheme}://{parts.netloc}' if parts.netloc else base.rstrip('/')
    if not url.startswith('/'):
        url = '/' + url
    return f'{origin}{url}'


def listing_url(url, base=BASE_URL):
    """房源的规范地址：绝对地址，去掉 #/?channel=... 这类片段"""
    url = to_absolute_url(url, base)
    if not url:
        return None
    return canonicalize_url(url, keep_fragments=False)


def detect_currency(text):
    if not text:
        return DEFAULT_CURRENCY
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in text:
            return code
    match = re.search(r'\b(GBP|EUR|USD)\b', text)
    return match.group(1) if match else DEFAULT_CURRENCY


def has_currency(text):
    return bool(text and CURRENCY_MARKERS.search(text))


def parse_price(text):
    """
    解析价格文本

    "£1,250,000" -> 1250000，"£450k" -> 450000，"£1.2 million" -> 1200000，
    "POA" 这类没有数字的返回 None。
    """
    if text is None:
        return None
    text = str(text)
    cleaned = _strip_chars.sub('', text)
    match = _number.search(cleaned)
    if not match:
        return None

    amount = float(match.group(1))
    if _million.search(text):
        amount *= 1_000_000
    elif _thousand.search(text):
        amount *= 1_000

    return {
        'amount': round(amount, 2),
        'currency': detect_currency(text),
        'display_text': clean_text(text),
    }


def classify_property_type(text):
    """按规则顺序匹配物业类型，匹配不到返回 None"""
    text = clean_text(text)
    if not text:
        return None
    for label, pattern in PROPERTY_TYPE_RULES:
        if pattern.search(text):
            return label
    return None


def dedupe_ordered(items):
    """保持首次出现顺序去重，丢掉空值"""
    result = []
    seen = set()
    for item in items or []:
        if isinstance(item, str):
            item = clean_text(item)
            if not item or item in seen:
                continue
            seen.add(item)
            result.append(item)
        elif item:
            if item in result:
                continue
            result.append(item)
    return result


def to_int(value):
    """房间数之类的计数：3 / 3.0 / "3 bedrooms" -> 3，其他返回 None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        number = int(value)
    else:
        match = _int_token.search(str(value))
        if not match:
            return None
        number = int(float(match.group(0)))
    return number if number >= 0 else None


def to_amount(value):
    """价格数值，只接受有限的数字，NaN / inf / 无法解析都返回 None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        parsed = parse_price(value)
        if not parsed:
            return None
        amount = parsed['amount']
    return amount if math.isfinite(amount) else None
