import scrapy


class ListingItem(scrapy.Item):
    # 核心字段
    listing_id = scrapy.Field()
    url = scrapy.Field()

    # 基本信息
    title = scrapy.Field()
    address = scrapy.Field()
    description = scrapy.Field()
    property_type = scrapy.Field()
    is_new_home = scrapy.Field()

    # 价格信息 {amount, currency, display_text}
    price = scrapy.Field()

    # 房源细节
    bedrooms = scrapy.Field()
    bathrooms = scrapy.Field()
    key_features = scrapy.Field()
    details = scrapy.Field()

    # 图片
    images = scrapy.Field()
    floorplans = scrapy.Field()

    # 中介信息 {name, phone, address, website}
    agent = scrapy.Field()

    # 数据来源与时间
    extraction_method = scrapy.Field()
    scraped_at = scrapy.Field()
