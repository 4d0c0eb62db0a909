"""
Results persistence.

Finished runs are written as JSON documents named
``<test-type>-<timestamp>.json`` under ``settings.RESULTS_DIR``.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from elserbench.config import settings

logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert models (and containers of models) into JSON-compatible data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def results_filename(test_type: str, when: Optional[datetime] = None) -> str:
    ts = (when or datetime.now(UTC)).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{test_type}-{ts}.json"


def save_results(
    test_type: str,
    results: Any,
    *,
    results_dir: Optional[str | Path] = None,
) -> Path:
    """Write ``results`` to a new file and return its path."""
    directory = Path(results_dir or settings.RESULTS_DIR)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / results_filename(test_type)
    document = {
        "test_type": test_type,
        "saved_at": datetime.now(UTC).isoformat(),
        "results": to_jsonable(results),
    }
    path.write_text(json.dumps(document, indent=2), encoding="utf-8")
    logger.info("Results saved to %s", path)
    return path


def load_results(path: str | Path) -> dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))
