"""
Rightmove 爬虫配置文件

使用说明：
1. 直接修改下面 Config 中的默认值
2. 数据库地址和日志级别也可以通过环境变量覆盖
3. 在代码中使用：from config import Config
"""

import os


class ConfigError(ValueError):
    """爬虫参数不合法"""


def parse_bool(value):
    """把命令行 / 环境变量里的字符串转换成布尔值"""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes', 'y', 'on'):
        return True
    if text in ('0', 'false', 'no', 'n', 'off', ''):
        return False
    raise ConfigError(f"无法识别的布尔值: {value!r}")


def _optional_int(name, value, minimum=0):
    if value is None or value == '':
        return None
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        raise ConfigError(f"{name} 必须是整数: {value!r}")
    if number < minimum:
        raise ConfigError(f"{name} 必须 >= {minimum}: {number}")
    return number


def _split_list(value):
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [str(v).strip().lower() for v in value if str(v).strip()]


class Config:
    """配置类 - 统一管理所有配置参数"""

    # ==================== 站点配置 ====================
    BASE_URL = 'https://www.rightmove.co.uk'
    NEW_HOMES_SEARCH_PATH = '/new-homes-for-sale/find.html'
    FOR_SALE_SEARCH_PATH = '/property-for-sale/find.html'
    API_URL_TEMPLATE = BASE_URL + '/api/property/{listing_id}?channel={channel}'

    # ==================== 搜索条件 ====================
    SEARCH_LOCATION = 'London'
    LOCATION_IDENTIFIER = None  # 例如 'REGION^87490'，为空时按 SEARCH_LOCATION 查表
    RADIUS = '0.0'
    MIN_PRICE = None
    MAX_PRICE = None
    MIN_BEDROOMS = None
    MAX_BEDROOMS = None
    PROPERTY_TYPES = []  # detached, semi-detached, terraced, flat, bungalow, land, park-home
    CHANNEL = 'NEW_HOME'  # NEW_HOME 或 BUY
    START_URL = None  # 直接指定搜索页，会覆盖以上搜索条件

    # ==================== 爬取范围 ====================
    COLLECT_DETAILS = True  # 是否进入详情页
    MAX_RESULTS = 100  # 最多入队的房源数
    MAX_PAGES = 5  # 最多翻页数
    PAGE_SIZE = 24  # 每个搜索页的房源数
    API_FALLBACK_ENABLED = True  # 详情页缺字段时是否调用 API 兜底

    # ==================== 请求配置 ====================
    MAX_CONCURRENCY = 3  # 并发请求数（建议3-5）
    REQUEST_DELAY = 1.2  # 基础请求间隔（秒）
    REQUEST_JITTER = 0.6  # 随机抖动（秒）
    MAX_RETRIES = 5
    REQUEST_TIMEOUT = 60
    USE_PLAYWRIGHT = False  # 是否使用 Playwright 渲染页面

    # ==================== 数据存储配置 ====================
    DATA_DIR = 'data'
    DATABASE_URL = os.environ.get('RIGHTMOVE_DATABASE_URL', 'sqlite:///data/rightmove.db')
    BATCH_SIZE = 15  # 攒够多少条再写库
    RUN_SUMMARY_PATH = 'data/run_summary.json'
    EXPORT_DIR = 'data/export'
    EXPORT_ENCODING = 'utf-8-sig'  # CSV导出编码（utf-8-sig支持Excel）

    # ==================== 日志配置 ====================
    LOGS_DIR = 'logs'
    LOG_LEVEL = os.environ.get('RIGHTMOVE_LOG_LEVEL', 'INFO').strip().upper()
    LOG_ROTATION = '50 MB'
    LOG_RETENTION = '30 days'

    CHANNELS = ('NEW_HOME', 'BUY')
    PROPERTY_TYPE_FILTERS = ('detached', 'semi-detached', 'terraced', 'flat', 'bungalow', 'land', 'park-home')

    @classmethod
    def validate(cls):
        """验证配置是否完整"""
        errors = []

        if cls.MAX_CONCURRENCY < 1:
            errors.append("❌ MAX_CONCURRENCY 必须 >= 1")
        if cls.MAX_CONCURRENCY > 10:
            errors.append("⚠️  MAX_CONCURRENCY > 10 容易被封")
        if cls.MAX_PAGES < 1:
            errors.append("❌ MAX_PAGES 必须 >= 1")
        if cls.MAX_RESULTS < 1:
            errors.append("❌ MAX_RESULTS 必须 >= 1")
        if cls.BATCH_SIZE < 1:
            errors.append("❌ BATCH_SIZE 必须 >= 1")
        if cls.CHANNEL not in cls.CHANNELS:
            errors.append(f"❌ CHANNEL 必须是 {cls.CHANNELS} 之一")
        if not cls.DATABASE_URL:
            errors.append("❌ DATABASE_URL 未设置")

        return errors

    @classmethod
    def get_config_dict(cls):
        """获取配置字典（用于传递给爬虫）"""
        return {
            'search_location': cls.SEARCH_LOCATION,
            'location_identifier': cls.LOCATION_IDENTIFIER,
            'radius': cls.RADIUS,
            'min_price': cls.MIN_PRICE,
            'max_price': cls.MAX_PRICE,
            'min_bedrooms': cls.MIN_BEDROOMS,
            'max_bedrooms': cls.MAX_BEDROOMS,
            'property_types': list(cls.PROPERTY_TYPES),
            'channel': cls.CHANNEL,
            'start_url': cls.START_URL,
            'collect_details': cls.COLLECT_DETAILS,
            'max_results': cls.MAX_RESULTS,
            'max_pages': cls.MAX_PAGES,
        }

    @classmethod
    def crawl_options(cls, **overrides):
        """
        合并默认配置和爬虫参数，并做类型转换和校验

        scrapy -a 传进来的参数都是字符串，这里统一处理。
        参数不合法时抛出 ConfigError。
        """
        options = cls.get_config_dict()
        for key, value in overrides.items():
            if key not in options:
                raise ConfigError(f"未知的爬虫参数: {key}")
            if value is not None:
                options[key] = value

        options['collect_details'] = parse_bool(options['collect_details'])
        options['max_results'] = _optional_int('max_results', options['max_results'], minimum=1)
        options['max_pages'] = _optional_int('max_pages', options['max_pages'], minimum=1)
        if options['max_results'] is None or options['max_pages'] is None:
            raise ConfigError("max_results 和 max_pages 不能为空")

        for key in ('min_price', 'max_price', 'min_bedrooms', 'max_bedrooms'):
            options[key] = _optional_int(key, options[key])
        if options['min_price'] and options['max_price'] and options['min_price'] > options['max_price']:
            raise ConfigError("min_price 不能大于 max_price")
        if (options['min_bedrooms'] is not None and options['max_bedrooms'] is not None
                and options['min_bedrooms'] > options['max_bedrooms']):
            raise ConfigError("min_bedrooms 不能大于 max_bedrooms")

        radius = options['radius'] if options['radius'] not in (None, '') else '0.0'
        try:
            options['radius'] = str(float(radius))
        except (TypeError, ValueError):
            raise ConfigError(f"radius 必须是数字: {radius!r}")

        options['property_types'] = _split_list(options['property_types'])
        unknown = [t for t in options['property_types'] if t not in cls.PROPERTY_TYPE_FILTERS]
        if unknown:
            raise ConfigError(f"未知的物业类型: {', '.join(unknown)}")

        options['channel'] = str(options['channel'] or cls.CHANNEL).strip().upper()
        if options['channel'] not in cls.CHANNELS:
            raise ConfigError(f"channel 必须是 {cls.CHANNELS} 之一: {options['channel']}")

        for key in ('search_location', 'location_identifier', 'start_url'):
            text = str(options[key]).strip() if options[key] is not None else ''
            options[key] = text or None

        return options

    @classmethod
    def print_config(cls):
        """打印当前配置"""
        print("=" * 60)
        print("当前配置")
        print("=" * 60)
        print(f"搜索地点: {cls.LOCATION_IDENTIFIER or cls.SEARCH_LOCATION}")
        print(f"频道: {cls.CHANNEL}")
        print(f"最多房源: {cls.MAX_RESULTS}，最多页数: {cls.MAX_PAGES}")
        print(f"详情页: {'是' if cls.COLLECT_DETAILS else '否'}")
        print(f"并发数: {cls.MAX_CONCURRENCY}")
        print(f"请求间隔: {cls.REQUEST_DELAY}秒 (+{cls.REQUEST_JITTER}秒抖动)")
        print(f"数据库: {cls.DATABASE_URL.split('@')[-1]}")
        print("=" * 60)


# 便捷访问
config = Config.get_config_dict()

# 验证配置
if __name__ == '__main__':
    Config.print_config()

    errors = Config.validate()
    if errors:
        print("\n配置错误：")
        for error in errors:
            print(error)
    else:
        print("\n✅ 配置验证通过")
