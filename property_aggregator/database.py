import os

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from config import Config

# --- 数据库连接配置 ---
# 默认使用本地 SQLite，可以通过环境变量 RIGHTMOVE_DATABASE_URL 换成 PostgreSQL
# 格式: "postgresql://<用户名>:<密码>@<主机地址>:<端口>/<数据库名>"
DATABASE_URL = Config.DATABASE_URL


def ensure_database_dir(database_url):
    """SQLite 文件所在的目录不存在时先建好"""
    url = make_url(database_url)
    if url.get_backend_name() != 'sqlite' or not url.database or url.database == ':memory:':
        return
    directory = os.path.dirname(url.database)
    if directory:
        os.makedirs(directory, exist_ok=True)


def get_engine(database_url=DATABASE_URL):
    ensure_database_dir(database_url)
    return create_engine(database_url)


def get_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


# 创建数据库引擎（不会立即连接）
engine = create_engine(DATABASE_URL)

# 创建一个SessionLocal类，用于数据库会话
SessionLocal = get_session_factory(engine)

# 创建一个Base类，我们的ORM模型将继承这个类
Base = declarative_base()
