from sqlalchemy import (
    JSON, TIMESTAMP, BigInteger, Boolean, Column, DECIMAL, Enum, Integer, SmallInteger, String, Text
)
from sqlalchemy.sql import func

from .database import Base

EXTRACTION_METHODS = (
    'card-only', 'json-ld', 'embedded-json', 'html-parse', 'json-ld+embedded', 'api-fallback', 'failed',
)


class Listing(Base):
    __tablename__ = 'listings'

    # --- 核心字段 ---
    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True)
    listing_id = Column(String(32), nullable=False, unique=True, comment="房源在 Rightmove 上的ID")
    url = Column(Text, nullable=False, unique=True, comment="房源详情页URL，核心去重字段")

    # --- 基本信息 ---
    title = Column(Text, comment="房源标题")
    address = Column(Text, comment="展示地址")
    description = Column(Text, comment="房源的详细描述")
    property_type = Column(String(50), index=True, comment="物业类型 (例如: 'Semi-Detached', 'Flat')")
    is_new_home = Column(Boolean, nullable=False, default=False, comment="是否新房")

    # --- 价格信息 ---
    price_amount = Column(DECIMAL(14, 2), index=True, comment="价格，未知时为空")
    price_currency = Column(String(5), nullable=False, default='GBP', comment="货币单位")
    price_display = Column(Text, comment="页面上展示的价格文本")

    # --- 房源细节 ---
    bedrooms = Column(SmallInteger, index=True, comment="卧室数量")
    bathrooms = Column(SmallInteger, comment="浴室数量")
    key_features = Column(JSON, comment="亮点列表")
    details = Column(JSON, comment="详情表")
    images = Column(JSON, comment="图片URL列表")
    floorplans = Column(JSON, comment="户型图URL列表")

    # --- 中介信息 ---
    agent_name = Column(String(255), comment="中介 / 开发商名称")
    agent_phone = Column(String(50), comment="中介电话")
    agent_address = Column(Text, comment="中介地址")
    agent_website = Column(Text, comment="中介主页")

    # --- 数据来源 ---
    extraction_method = Column(
        Enum(*EXTRACTION_METHODS, name='extraction_method_enum'), nullable=False, index=True,
        comment="数据提取方式",
    )
    scraped_at = Column(String(40), comment="爬取时间（ISO-8601）")

    # --- 时间戳与审计字段 ---
    first_seen_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), comment="首次被爬虫发现的时间")
    last_seen_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), index=True, comment="最后一次被爬虫扫描到的时间")
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), comment="记录在本数据库的创建时间")
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now(), comment="记录在本数据库的更新时间")

    def __repr__(self):
        return f"<Listing(id={self.id}, listing_id='{self.listing_id}', title='{self.title}')>"


def listing_columns(item):
    """ListingItem -> Listing 的列"""
    price = item.get('price') or {}
    agent = item.get('agent') or {}
    return {
        'listing_id': item.get('listing_id'),
        'url': item.get('url'),
        'title': item.get('title'),
        'address': item.get('address'),
        'description': item.get('description'),
        'property_type': item.get('property_type'),
        'is_new_home': bool(item.get('is_new_home')),
        'price_amount': price.get('amount'),
        'price_currency': price.get('currency') or 'GBP',
        'price_display': price.get('display_text'),
        'bedrooms': item.get('bedrooms'),
        'bathrooms': item.get('bathrooms'),
        'key_features': list(item.get('key_features') or []),
        'details': dict(item.get('details') or {}),
        'images': list(item.get('images') or []),
        'floorplans': list(item.get('floorplans') or []),
        'agent_name': agent.get('name'),
        'agent_phone': agent.get('phone'),
        'agent_address': agent.get('address'),
        'agent_website': agent.get('website'),
        'extraction_method': item.get('extraction_method'),
        'scraped_at': item.get('scraped_at'),
    }
