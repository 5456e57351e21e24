from datetime import datetime, timezone

from itemadapter import ItemAdapter
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from config import Config
from property_aggregator.create_tables import create_tables
from property_aggregator.database import get_engine, get_session_factory
from property_aggregator.models import Listing, listing_columns

from .state import BatchBuffer


class ListingBatchPipeline:
    """
    把房源攒成一批再写库，按 listing_id 或 url 做插入或更新。
    爬虫关闭时把不满一批的剩余记录也写进去。
    """

    def __init__(self, session_factory=None, database_url=None, batch_size=Config.BATCH_SIZE, stats=None):
        self.Session = session_factory
        self.database_url = database_url or Config.DATABASE_URL
        self.buffer = BatchBuffer(batch_size)
        self.stats = stats
        self.session = None  # 会话将在 open_spider 中创建
        self.stored_count = 0

    @classmethod
    def from_crawler(cls, crawler):
        settings = crawler.settings
        return cls(
            database_url=settings.get('DATABASE_URL'),
            batch_size=settings.getint('BATCH_SIZE', Config.BATCH_SIZE),
            stats=crawler.stats,
        )

    def open_spider(self, spider):
        """
        当爬虫启动时调用。准备好表并创建一个新的数据库会话。
        """
        if self.Session is None:
            engine = get_engine(self.database_url)
            create_tables(bind=engine)
            self.Session = get_session_factory(engine)
        spider.logger.info("Pipeline: 正在打开数据库会话。")
        self.session = self.Session()

    def close_spider(self, spider):
        """
        当爬虫关闭时调用。写入剩余的记录并关闭数据库会话。
        """
        remaining = self.buffer.drain()
        if remaining:
            spider.logger.info(f"Pipeline: 写入最后 {len(remaining)} 条记录")
            self.write_batch(remaining, spider)
        spider.logger.info(f"Pipeline: 正在关闭数据库会话，本次共写入 {self.stored_count} 条。")
        if self.session:
            self.session.close()

    def process_item(self, item, spider):
        record = ItemAdapter(item).asdict()
        batch = self.buffer.append(record)
        if batch:
            self.write_batch(batch, spider)
        return item

    def write_batch(self, records, spider):
        """
        一批记录一个事务。listing_id 和 url 都是唯一的，按两者之一找已有记录。
        整批提交失败时回滚，再逐条写入，一条冲突只丢那一条。
        """
        # 同一批里同一个房源只保留最后一条
        by_key = {}
        for record in records:
            by_key[record.get('listing_id') or record['url']] = record
        batch = list(by_key.values())

        now = datetime.now(timezone.utc)
        try:
            for record in batch:
                self._upsert(record, now, spider)
            self.session.commit()
            stored = len(batch)
        except SQLAlchemyError as e:
            self.session.rollback()
            spider.logger.warning(f"Pipeline: 整批写入失败，改为逐条写入 ({len(batch)} 条) - {e}")
            stored = self._write_one_by_one(batch, now, spider)

        self.stored_count += stored
        if self.stats is not None:
            self.stats.inc_value('listings/stored', stored)
        spider.logger.info(f"Pipeline: 已写入 {stored} 条，累计 {self.stored_count} 条")
        return stored

    def _write_one_by_one(self, records, now, spider):
        stored = 0
        for record in records:
            try:
                self._upsert(record, now, spider)
                self.session.commit()
                stored += 1
            except IntegrityError as e:
                self.session.rollback()
                spider.logger.error(f"Pipeline: 完整性错误 (可能重复的 listing_id 或 url)，跳过 {record['url']} - {e}")
            except SQLAlchemyError as e:
                self.session.rollback()
                spider.logger.error(f"Pipeline: 写入数据库时发生错误，跳过 {record['url']} - {e}")
        return stored

    def _upsert(self, record, now, spider):
        columns = listing_columns(record)
        conditions = [Listing.url == columns['url']]
        if columns.get('listing_id'):
            conditions.append(Listing.listing_id == columns['listing_id'])
        existing = self.session.query(Listing).filter(or_(*conditions)).first()
        if existing:
            spider.logger.debug(f"Pipeline: 正在更新现有房源: {columns['url']}")
            for key, value in columns.items():
                setattr(existing, key, value)
            existing.last_seen_at = now
        else:
            spider.logger.debug(f"Pipeline: 正在插入新房源: {columns['url']}")
            self.session.add(Listing(**columns))
        # 先 flush，同一批后面的查询才能看到这条
        self.session.flush()
