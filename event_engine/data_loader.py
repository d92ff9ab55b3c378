"""
Streaming position loader for AIS CSV/Parquet files.

Reads in chunks to keep memory flat on multi-gigabyte daily files and yields
``PositionReport`` objects ready for the engine.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import numpy as np
import pandas as pd
import pyarrow.parquet as pq

from .constants import COLUMN_ALIASES, REQUIRED_COLUMNS, LOADER_CHUNK_SIZE
from .data_structures import PositionReport

logger = logging.getLogger(__name__)


@dataclass
class LoaderConfig:
    """Configuration for position loading."""
    chunk_size: int = LOADER_CHUNK_SIZE
    sort_chunks: bool = True  # Sort each chunk by time before yielding


def normalize_columns(chunk: pd.DataFrame) -> pd.DataFrame:
    """Map lowercase / alternative column names onto the canonical ones."""
    rename = {}
    for col in chunk.columns:
        key = col.strip().lower()
        if key in COLUMN_ALIASES and COLUMN_ALIASES[key] not in chunk.columns:
            rename[col] = COLUMN_ALIASES[key]
    return chunk.rename(columns=rename)


class StreamingDataLoader:
    """Chunked loader producing position reports."""

    def __init__(self, config: Optional[LoaderConfig] = None):
        self.config = config or LoaderConfig()
        self.stats = {
            'total_records': 0,
            'valid_records': 0,
            'invalid_records': 0,
            'chunks_processed': 0,
        }

    def _iter_chunks(self, filepath: Path) -> Iterator[pd.DataFrame]:
        suffix = filepath.suffix.lower()
        if suffix == '.parquet':
            parquet_file = pq.ParquetFile(filepath)
            for batch in parquet_file.iter_batches(batch_size=self.config.chunk_size):
                yield batch.to_pandas()
        elif suffix in ('.csv', '.gz'):
            yield from pd.read_csv(filepath, chunksize=self.config.chunk_size,
                                   na_values=['', 'NA', 'null'])
        else:
            raise ValueError(f"Unsupported file format: {suffix}")

    def _clean_chunk(self, chunk: pd.DataFrame) -> pd.DataFrame:
        chunk = normalize_columns(chunk)
        missing = [c for c in REQUIRED_COLUMNS if c not in chunk.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        chunk = chunk.copy()
        chunk['BaseDateTime'] = pd.to_datetime(chunk['BaseDateTime'], errors='coerce', utc=True)
        for col in ('MMSI', 'LAT', 'LON', 'SOG', 'COG', 'Heading', 'Status'):
            if col in chunk.columns:
                chunk[col] = pd.to_numeric(chunk[col], errors='coerce')

        valid = (
            chunk['MMSI'].notna() & chunk['BaseDateTime'].notna()
            & chunk['LAT'].between(-90, 90) & chunk['LON'].between(-180, 180)
            & (chunk['SOG'] >= 0)
        )
        invalid = int((~valid).sum())
        if invalid:
            logger.debug(f"Dropping {invalid} invalid rows")
        self.stats['invalid_records'] += invalid
        chunk = chunk[valid]

        if self.config.sort_chunks:
            chunk = chunk.sort_values('BaseDateTime', kind='stable')
        return chunk

    def iter_reports(self, filepath: str) -> Iterator[PositionReport]:
        """
        Stream position reports from a CSV or Parquet file.

        Args:
            filepath: Path to the input file

        Yields:
            PositionReport objects in file order (time-sorted within a chunk)
        """
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Input file not found: {path}")

        logger.info(f"Starting streaming load from {path}")
        for chunk in self._iter_chunks(path):
            self.stats['chunks_processed'] += 1
            self.stats['total_records'] += len(chunk)
            chunk = self._clean_chunk(chunk)
            self.stats['valid_records'] += len(chunk)

            has_cog = 'COG' in chunk.columns
            has_heading = 'Heading' in chunk.columns
            has_status = 'Status' in chunk.columns
            for row in chunk.itertuples(index=False):
                cog = getattr(row, 'COG') if has_cog else np.nan
                heading = getattr(row, 'Heading') if has_heading else np.nan
                status = getattr(row, 'Status') if has_status else np.nan
                yield PositionReport(
                    mmsi=int(row.MMSI),
                    timestamp=row.BaseDateTime.to_pydatetime(),
                    lat=float(row.LAT),
                    lon=float(row.LON),
                    sog=float(row.SOG),
                    cog=0.0 if pd.isna(cog) else float(cog),
                    heading=None if pd.isna(heading) else float(heading),
                    nav_status=None if pd.isna(status) else int(status),
                )

        logger.info(f"Loaded {self.stats['valid_records']:,} valid of "
                    f"{self.stats['total_records']:,} records")
