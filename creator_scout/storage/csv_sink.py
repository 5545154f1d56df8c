"""CSV export of scraped posts."""

import csv
import logging
import os
from typing import List

import pandas as pd

from creator_scout.models.post import CSV_COLUMNS, Post

logger = logging.getLogger(__name__)


class CsvSink:
    """Writes posts to a CSV file with a fixed column set."""

    COLUMNS = CSV_COLUMNS

    def __init__(self, csv_path: str):
        """
        Initialize the CSV sink with a file path.

        Args:
            csv_path: Path to the CSV file
        """
        self.csv_path = csv_path
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Ensure the directory for the CSV file exists."""
        directory = os.path.dirname(self.csv_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def to_frame(self, posts: List[Post]) -> pd.DataFrame:
        df = pd.DataFrame([post.to_record() for post in posts])
        return df.reindex(columns=self.COLUMNS)

    def write(self, posts: List[Post]) -> int:
        """
        Write posts to the CSV file, replacing any previous content.

        String fields are double-quoted with embedded quotes doubled.

        Args:
            posts: Posts to export

        Returns:
            Number of rows written
        """
        df = self.to_frame(posts)
        df.to_csv(
            self.csv_path,
            mode="w",
            index=False,
            header=True,
            quoting=csv.QUOTE_NONNUMERIC,
            doublequote=True,
            encoding="utf-8",
        )
        logger.info(f"Wrote {len(df)} posts to {self.csv_path}")
        return len(df)
