"""JSON export of scraping results."""

import json
import logging
import os
from typing import Any, Union

from creator_scout.models.post import ScrapingResult

logger = logging.getLogger(__name__)


class JsonSink:
    """Serializes a result (or anything JSON-compatible) to a file."""

    def __init__(self, json_path: str):
        self.json_path = json_path
        directory = os.path.dirname(json_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def write(self, payload: Union[ScrapingResult, Any]) -> None:
        if isinstance(payload, ScrapingResult):
            payload = payload.to_dict()
        with open(self.json_path, "w", encoding="utf-8") as file:
            json.dump(payload, file, indent=2, ensure_ascii=False, default=str)
        logger.info(f"Wrote results to {self.json_path}")
