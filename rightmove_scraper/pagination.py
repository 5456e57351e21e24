"""
搜索结果翻页

只有两个状态：HAS_NEXT（有下一页）和 EXHAUSTED（到了页数上限）。
这里从不判断"结果已经翻完"，网站不给总数，空页由爬虫自己判断。
"""

from collections import namedtuple

from w3lib.url import add_or_replace_parameter, url_query_parameter

from .normalizers import to_absolute_url

HAS_NEXT = 'has_next'
EXHAUSTED = 'exhausted'

PAGE_SIZE = 24
OFFSET_PARAM = 'index'
PAGE_PARAM = 'page'

# 下一页按钮，按优先级排列
NEXT_CONTROL_SELECTORS = (
    'a[rel="next"]',
    'link[rel="next"]',
    '[aria-label*="Next"]',
    '[data-test*="next"]',
    'span.dsrm_button__icon--right',
    '[class*="pagination-next"]',
    '[class*="next"]',
)
NEXT_HREF_ATTRS = ('href', 'data-url')
NEXT_INDEX_ATTRS = ('data-page', 'data-index', 'value')

PageTransition = namedtuple('PageTransition', ['state', 'cursor'])


class SearchCursor:
    """当前搜索页的位置"""

    def __init__(self, request_url, page_number=1, page_size=PAGE_SIZE):
        self.request_url = request_url
        self.page_number = page_number
        self.page_size = page_size

    @property
    def offset_index(self):
        return (self.page_number - 1) * self.page_size

    def advance(self, next_url):
        return SearchCursor(next_url, self.page_number + 1, self.page_size)

    def __eq__(self, other):
        if not isinstance(other, SearchCursor):
            return NotImplemented
        return (self.request_url, self.page_number, self.page_size) == (
            other.request_url, other.page_number, other.page_size)

    def __repr__(self):
        return f"<SearchCursor(page={self.page_number}, url='{self.request_url}')>"


def _control_node(node):
    """图标一类的节点要往上找到外层的 a / button"""
    if node.root is not None and getattr(node.root, 'tag', None) in ('a', 'button', 'link'):
        return node
    wrapper = node.xpath('ancestor::*[self::a or self::button][1]')
    return wrapper[0] if wrapper else node


def _next_controls(selector):
    for css in NEXT_CONTROL_SELECTORS:
        for node in selector.css(css):
            yield _control_node(node)


def _int_attr(node, attrs):
    for attr in attrs:
        value = node.attrib.get(attr)
        if value is not None and str(value).strip().isdigit():
            return int(value)
    return None


def _increment_offset(cursor):
    """兜底：index 加一页，page 参数存在的话也加一"""
    url = cursor.request_url
    try:
        index = int(url_query_parameter(url, OFFSET_PARAM) or 0)
    except ValueError:
        index = cursor.offset_index
    url = add_or_replace_parameter(url, OFFSET_PARAM, str(index + cursor.page_size))

    page = url_query_parameter(url, PAGE_PARAM)
    if page is not None and page.isdigit():
        url = add_or_replace_parameter(url, PAGE_PARAM, str(int(page) + 1))
    return url


def resolve_next_page(selector, cursor, max_pages):
    """
    计算下一页的地址

    1. 下一页按钮上的 href
    2. 下一页按钮上的页码属性（从 0 开始），index = 页码 × 每页数量
    3. 当前 URL 的 index 加一页
    """
    if max_pages is not None and cursor.page_number >= max_pages:
        return PageTransition(EXHAUSTED, None)

    indexed_control = None
    for control in _next_controls(selector):
        for attr in NEXT_HREF_ATTRS:
            href = control.attrib.get(attr)
            if href and href.strip() and not href.strip().startswith(('#', 'javascript:')):
                next_url = to_absolute_url(href.strip(), cursor.request_url)
                return PageTransition(HAS_NEXT, cursor.advance(next_url))
        if indexed_control is None and _int_attr(control, NEXT_INDEX_ATTRS) is not None:
            indexed_control = control

    if indexed_control is not None:
        page_index = _int_attr(indexed_control, NEXT_INDEX_ATTRS)
        next_url = add_or_replace_parameter(
            cursor.request_url, OFFSET_PARAM, str(page_index * cursor.page_size))
        return PageTransition(HAS_NEXT, cursor.advance(next_url))

    return PageTransition(HAS_NEXT, cursor.advance(_increment_offset(cursor)))
