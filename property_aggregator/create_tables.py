from loguru import logger

from .database import DATABASE_URL, Base, engine, ensure_database_dir
from .models import Listing


def create_tables(bind=engine):
    # create_all 只会创建不存在的表，已存在的表不做任何操作
    Base.metadata.create_all(bind=bind)
    logger.info(f"数据表已就绪: {Listing.__tablename__}")


def main():
    logger.info("正在连接到数据库并创建表...")
    ensure_database_dir(DATABASE_URL)
    create_tables()
    logger.success("操作完成。如果 'listings' 表不存在，则已成功创建。")


if __name__ == "__main__":
    main()
