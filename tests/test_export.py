import json

import pandas as pd

from export_listings import export_listings
from property_aggregator.create_tables import create_tables
from property_aggregator.database import get_engine, get_session_factory
from property_aggregator.models import Listing


def test_export_writes_csv_and_stats(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'listings.db'}"
    engine = get_engine(database_url)
    create_tables(bind=engine)
    session = get_session_factory(engine)()
    session.add_all([
        Listing(listing_id='1', url='https://www.rightmove.co.uk/properties/1', address='1 Road Lane',
                price_amount=300000, extraction_method='json-ld', is_new_home=True),
        Listing(listing_id='2', url='https://www.rightmove.co.uk/properties/2', extraction_method='failed'),
    ])
    session.commit()
    session.close()
    engine.dispose()

    csv_path, stats = export_listings(database_url, export_dir=str(tmp_path / 'export'))

    df = pd.read_csv(csv_path)
    assert len(df) == 2
    assert stats['total_records'] == 2
    assert stats['failed_records'] == 1
    assert stats['complete_records'] == 1
    assert stats['new_home_records'] == 1
    assert stats['by_extraction_method'] == {'json-ld': 1, 'failed': 1}
    assert stats['completion_rate'] == '50.00%'

    stats_files = list((tmp_path / 'export').glob('rightmove_stats_*.json'))
    with open(stats_files[0], encoding='utf-8') as f:
        assert json.load(f) == stats


def test_export_without_table(tmp_path):
    csv_path, stats = export_listings(f"sqlite:///{tmp_path / 'empty.db'}", export_dir=str(tmp_path / 'export'))
    assert csv_path is None
    assert stats is None
