from rightmove_scraper.locators import (
    breadth_first_find,
    extract_embedded_blobs,
    extract_json_ld,
    find_embedded_listing,
    find_linked_data_listing,
    find_listing_payload,
    find_search_results,
    looks_like_listing,
)


def test_malformed_json_ld_block_is_skipped():
    html = """
    <script type="application/ld+json">{"@type": "Product", broken</script>
    <script type="application/ld+json">{"@type": "Product", "name": "Flat"}</script>
    """
    entries = extract_json_ld(html)
    assert entries == [{'@type': 'Product', 'name': 'Flat'}]


def test_json_ld_graph_and_lists_are_flattened():
    html = """
    <script type="application/ld+json">
    {"@graph": [{"@type": "Organization", "name": "Rightmove"}, {"@type": ["Residence"], "name": "Home"}]}
    </script>
    <script type="application/ld+json">[{"@type": "BreadcrumbList"}]</script>
    """
    assert len(extract_json_ld(html)) == 3
    assert find_linked_data_listing(html)['name'] == 'Home'


def test_no_json_ld():
    assert extract_json_ld('<html></html>') == []
    assert find_linked_data_listing('') is None


def test_embedded_marker_and_next_data():
    html = """
    <script>window.PAGE_MODEL = {"propertyData": {"address": "1 High St", "bedrooms": 2}};</script>
    <script id="__NEXT_DATA__" type="application/json">{"props": {"pageProps": {}}}</script>
    """
    blobs = extract_embedded_blobs(html)
    assert blobs[0] == {'propertyData': {'address': '1 High St', 'bedrooms': 2}}
    assert blobs[1] == {'props': {'pageProps': {}}}


def test_truncated_embedded_blob_is_ignored():
    html = '<script>window.PAGE_MODEL = {"propertyData": {"address": </script>'
    assert extract_embedded_blobs(html) == []
    assert find_embedded_listing(html) is None


def test_looks_like_listing_needs_address_and_one_more_key():
    assert looks_like_listing({'displayAddress': 'x', 'price': 1})
    assert not looks_like_listing({'displayAddress': 'x'})
    assert not looks_like_listing({'bedrooms': 2, 'price': 1})
    assert not looks_like_listing(['address'])


def test_known_path_wins_over_search():
    blob = {
        'other': {'address': 'A road 1', 'price': 1},
        'propertyData': {'address': 'B road 2', 'bedrooms': 3},
    }
    assert find_listing_payload(blob)['address'] == 'B road 2'


def test_breadth_first_prefers_shallow_match():
    blob = {
        'deep': {'x': {'y': {'address': 'deep one', 'price': 1}}},
        'shallow': {'address': 'shallow one', 'price': 2},
    }
    assert find_listing_payload(blob)['address'] == 'shallow one'


def test_breadth_first_respects_depth_limit():
    node = {'address': '7 Deep Road', 'bedrooms': 2}
    for _ in range(8):
        node = {'child': node}
    assert breadth_first_find(node, looks_like_listing, max_depth=6) is None
    assert breadth_first_find(node, looks_like_listing, max_depth=10)['address'] == '7 Deep Road'


def test_breadth_first_survives_cycles():
    root = {'items': []}
    root['items'].append(root)
    root['self'] = root
    assert breadth_first_find(root, looks_like_listing) is None


def test_find_search_results():
    html = """
    <script>window.jsonModel = {"properties": [
        {"id": 1111, "propertyUrl": "/properties/1111#/", "displayAddress": "1 High Street, Leeds"}
    ], "pagination": {"next": "24"}};</script>
    """
    results = find_search_results(html)
    assert results[0]['id'] == 1111
    assert find_search_results('<html></html>') == []
