import pytest
from scrapy.http import HtmlResponse, Request, TextResponse

SEARCH_URL = 'https://www.rightmove.co.uk/new-homes-for-sale/find.html?locationIdentifier=REGION%5E87490'
DETAIL_URL = 'https://www.rightmove.co.uk/properties/123456789'


def make_response(url, body, meta=None, cls=HtmlResponse, status=200):
    """带 request.meta 的假响应，和 Scrapy 回调里拿到的一样"""
    request = Request(url=url, meta=meta or {})
    return cls(url=url, body=body.encode('utf-8'), encoding='utf-8', request=request, status=status)


def make_json_response(url, body, meta=None, status=200):
    return make_response(url, body, meta=meta, cls=TextResponse, status=status)


SEARCH_PAGE = """
<html><body>
<div class="l-searchResults">
  <div data-test="property-card">
    <a href="/properties/123456789"><h2 class="address">12 Acacia Avenue, London SW1A 1AA</h2></a>
    <div class="price">£450,000</div>
    <p>3 bedrooms 2 bathrooms</p>
    <img src="//media.rightmove.co.uk/123.jpg">
    <span class="badge">Help to Buy</span>
  </div>
  <div data-test="property-card">
    <a href="/properties/987654321"><h2 class="address">4 Mill Lane, London E1 6AN</h2></a>
    <div class="price">£1.2 million</div>
    <p>5 bedrooms</p>
  </div>
  <div data-test="property-card">
    <a href="/properties/123456789"><h2 class="address">12 Acacia Avenue, London SW1A 1AA</h2></a>
    <div class="price">£450,000</div>
  </div>
</div>
</body></html>
"""

DETAIL_PAGE = """
<html><head>
<title>3 bedroom semi-detached house for sale in Acacia Avenue</title>
<script type="application/ld+json">
{"@context": "https://schema.org", "@type": "Product",
 "name": "3 bedroom semi-detached house for sale",
 "description": "A lovely family home",
 "image": ["https://media.rightmove.co.uk/a.jpg"],
 "offers": {"price": "450000", "priceCurrency": "GBP"}}
</script>
<script>
window.PAGE_MODEL = {"propertyData": {"id": "123456789",
  "address": {"displayAddress": "12 Acacia Avenue, London SW1A 1AA"},
  "bedrooms": 3, "bathrooms": 2, "propertySubType": "Semi-Detached",
  "prices": {"primaryPrice": "£450,000"},
  "keyFeatures": ["Private garden", "Off-street parking"],
  "images": [{"url": "https://media.rightmove.co.uk/a.jpg"}, {"url": "https://media.rightmove.co.uk/b.jpg"}],
  "floorplans": [{"url": "https://media.rightmove.co.uk/fp.jpg"}],
  "customer": {"branchDisplayName": "Acme Homes", "contactTelephone": "020 7946 0000"}}};
</script>
</head>
<body><h1>3 bedroom semi-detached house for sale</h1></body></html>
"""

EMPTY_DETAIL_PAGE = "<html><body><p>Nothing to see</p></body></html>"


@pytest.fixture
def card_partial():
    return {
        'listing_id': '123456789',
        'url': DETAIL_URL,
        'address': '12 Acacia Avenue, London SW1A 1AA',
        'price': {'amount': 450000.0, 'currency': 'GBP', 'display_text': '£450,000'},
        'images': ['https://media.rightmove.co.uk/123.jpg'],
        'is_new_home': True,
        'extraction_method': 'card-only',
    }
