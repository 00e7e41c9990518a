"""
Checkpoint state for resuming paged table runs.

After each page the orchestrator reports the page it finished; the
store keeps the last one per table in a small JSON file so an aborted
run can restart at the following page instead of page 0.
"""

import json
import logging
import os
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from prometheus_client import Counter

from utils.metrics import get_or_create_metric

logger = logging.getLogger(__name__)


CHECKPOINT_OPERATIONS = get_or_create_metric(
    lambda: Counter(
        "reconcile_checkpoint_operations_total",
        "Checkpoint file operations",
        ["operation"],  # load, save, clear
    ),
    "reconcile_checkpoint_operations",
)


class CheckpointStore:
    """
    Persists the last completed page per table.

    A checkpoint is only valid for the page size it was written with;
    a different page size puts page boundaries at different offsets.
    """

    def __init__(self, state_dir: str | Path = "./reconciliation_state"):
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Checkpoint state dir: {self.state_dir}")

    def _get_state_file(self, table: str) -> Path:
        safe_table_name = re.sub(r'[/\\:*?"<>|]', '_', table)
        return self.state_dir / f"{safe_table_name}_checkpoint.json"

    def save(self, table: str, page_index: int, page_size: int) -> None:
        """Record ``page_index`` as the last fully emitted page of ``table``."""
        state = {
            "table": table,
            "last_completed_page": page_index,
            "page_size": page_size,
            "updated_at": datetime.now(UTC).isoformat(),
        }
        state_file = self._get_state_file(table)
        tmp_file = state_file.with_suffix(".json.tmp")
        with open(tmp_file, "w") as f:
            json.dump(state, f, indent=2)
        os.replace(tmp_file, state_file)

        CHECKPOINT_OPERATIONS.labels(operation="save").inc()
        logger.debug(f"Checkpoint for {table}: page {page_index} done")

    def load(self, table: str) -> dict[str, Any] | None:
        """Saved state for a table, or None if there is none or it is unreadable."""
        state_file = self._get_state_file(table)
        if not state_file.exists():
            return None

        try:
            with open(state_file) as f:
                state = json.load(f)
            int(state["last_completed_page"])
            int(state["page_size"])
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable checkpoint for {table}: {e}")
            return None

        CHECKPOINT_OPERATIONS.labels(operation="load").inc()
        return state

    def resume_page(self, table: str, page_size: int) -> int:
        """
        Page to start from: the one after the checkpoint, or 0.
        """
        state = self.load(table)
        if state is None:
            return 0
        if int(state["page_size"]) != page_size:
            logger.warning(
                f"Checkpoint for {table} was written with page size {state['page_size']}, "
                f"current page size is {page_size}; starting from page 0"
            )
            return 0
        page = int(state["last_completed_page"]) + 1
        logger.info(f"Resuming {table} from page {page}")
        return page

    def clear(self, table: str) -> None:
        state_file = self._get_state_file(table)
        if state_file.exists():
            state_file.unlink()
            CHECKPOINT_OPERATIONS.labels(operation="clear").inc()
            logger.info(f"Cleared checkpoint for table {table}")

    def list_tables(self) -> list[str]:
        """Tables that currently have a checkpoint."""
        tables = []
        for state_file in self.state_dir.glob("*_checkpoint.json"):
            try:
                with open(state_file) as f:
                    tables.append(json.load(f)["table"])
            except (OSError, json.JSONDecodeError, KeyError) as e:
                logger.warning(f"Skipping unreadable checkpoint {state_file.name}: {e}")
        return sorted(tables)
