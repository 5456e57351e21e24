#!/usr/bin/env python3
"""
导出数据库里的房源到 CSV，并生成一份统计 JSON
"""

import json
import os
import sys
import time

import pandas as pd
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from property_aggregator.database import get_engine
from property_aggregator.models import Listing


def listing_stats(df, export_time):
    """统计总数、失败数、各提取方式数量和完整度"""
    total = len(df)
    failed = int((df['extraction_method'] == 'failed').sum()) if total else 0
    complete = int((df['address'].notna() & df['price_amount'].notna()).sum()) if total else 0
    by_method = df['extraction_method'].value_counts().to_dict() if total else {}
    return {
        "total_records": total,
        "failed_records": failed,
        "new_home_records": int(df['is_new_home'].fillna(False).astype(bool).sum()) if total else 0,
        "by_extraction_method": {str(k): int(v) for k, v in by_method.items()},
        "complete_records": complete,
        "completion_rate": f"{complete / total * 100:.2f}%" if total > 0 else "0%",
        "export_time": export_time,
    }


def export_listings(database_url=None, export_dir=None, encoding=Config.EXPORT_ENCODING):
    """导出数据库数据到CSV文件，返回 (csv_path, stats)"""
    export_dir = export_dir or Config.EXPORT_DIR
    os.makedirs(export_dir, exist_ok=True)

    engine = get_engine(database_url or Config.DATABASE_URL)
    try:
        df = pd.read_sql_table(Listing.__tablename__, engine)
    except (SQLAlchemyError, ValueError) as e:
        logger.error(f"读取数据库失败: {e}")
        return None, None
    finally:
        engine.dispose()

    timestamp = time.strftime("%Y%m%d_%H%M%S")
    csv_path = os.path.join(export_dir, f"rightmove_export_{timestamp}.csv")
    df.to_csv(csv_path, index=False, encoding=encoding)

    stats = listing_stats(df, timestamp)
    stats_path = os.path.join(export_dir, f"rightmove_stats_{timestamp}.json")
    with open(stats_path, 'w', encoding='utf-8') as f:
        json.dump(stats, f, ensure_ascii=False, indent=4)

    logger.success(f"数据导出成功: {csv_path}")
    logger.success(f"失败记录: {stats['failed_records']}/{stats['total_records']}")
    logger.success(f"完整记录: {stats['complete_records']}/{stats['total_records']} ({stats['completion_rate']})")
    return csv_path, stats


if __name__ == '__main__':
    path, _ = export_listings()
    sys.exit(0 if path else 1)
