import gzip
from datetime import datetime, timezone

import pandas as pd
import pytest

from event_engine.data_loader import StreamingDataLoader, LoaderConfig, normalize_columns

CSV = """MMSI,BaseDateTime,LAT,LON,SOG,COG,Heading,Status
366000001,2024-01-01T00:01:00,10.0,20.0,0.2,45.0,511,5
366000001,2024-01-01T00:00:00,10.0,20.0,0.1,,,
366000002,2024-01-01T00:00:30,95.0,20.0,1.0,0.0,,
366000003,not-a-time,10.0,20.0,1.0,0.0,,
366000004,2024-01-01T00:02:00,10.0,20.0,-1.0,0.0,,
"""


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "positions.csv"
    path.write_text(CSV)
    return path


def test_csv_reports(csv_file):
    loader = StreamingDataLoader()
    reports = list(loader.iter_reports(str(csv_file)))

    assert [r.timestamp for r in reports] == [
        datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc),
        datetime(2024, 1, 1, 0, 1, tzinfo=timezone.utc),
    ]
    first, second = reports
    assert first.mmsi == 366000001
    assert first.cog == 0.0
    assert first.heading is None
    assert second.sog == pytest.approx(0.2)
    assert second.nav_status == 5
    assert loader.stats['total_records'] == 5
    assert loader.stats['valid_records'] == 2
    assert loader.stats['invalid_records'] == 3


def test_gzip_csv(tmp_path):
    path = tmp_path / "positions.csv.gz"
    with gzip.open(path, 'wt') as f:
        f.write(CSV)
    assert len(list(StreamingDataLoader().iter_reports(str(path)))) == 2


def test_parquet_in_chunks(tmp_path):
    path = tmp_path / "positions.parquet"
    frame = pd.DataFrame({
        'mmsi': [1, 2, 3],
        'timestamp': pd.to_datetime(['2024-01-01 00:00', '2024-01-01 00:01', '2024-01-01 00:02']),
        'latitude': [1.0, 2.0, 3.0],
        'longitude': [4.0, 5.0, 6.0],
        'speed': [0.0, 1.0, 2.0],
    })
    frame.to_parquet(path, engine='pyarrow', index=False)

    loader = StreamingDataLoader(LoaderConfig(chunk_size=2))
    reports = list(loader.iter_reports(str(path)))
    assert [r.mmsi for r in reports] == [1, 2, 3]
    assert reports[2].lon == 6.0
    assert loader.stats['chunks_processed'] == 2


def test_normalize_columns_keeps_canonical_names():
    frame = pd.DataFrame(columns=['MMSI', 'mmsi', 'Latitude', 'lng'])
    assert list(normalize_columns(frame).columns) == ['MMSI', 'mmsi', 'LAT', 'LON']


def test_missing_columns(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("MMSI,LAT,LON\n1,2,3\n")
    with pytest.raises(ValueError, match="Missing required columns"):
        list(StreamingDataLoader().iter_reports(str(path)))


def test_unsupported_format(tmp_path):
    path = tmp_path / "positions.txt"
    path.write_text("x")
    with pytest.raises(ValueError):
        list(StreamingDataLoader().iter_reports(str(path)))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        list(StreamingDataLoader().iter_reports(str(tmp_path / "none.csv")))
