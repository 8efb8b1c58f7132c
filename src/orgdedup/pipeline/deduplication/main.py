"""Entry points for the deduplication pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from orgdedup.config.policies import DeduplicationPolicy
from orgdedup.config.settings import Settings, get_settings
from orgdedup.entities.core import Organisation
from orgdedup.utils.helpers import utc_now
from orgdedup.utils.logging import get_logger

from .io import load_records, write_result
from .processor import DeduplicationProcessor, DeduplicationResult

_LOGGER = get_logger(module=__name__)
DEFAULT_RESULT_FILENAME = "deduplication_result.json"


def deduplicate_records(
    records: Iterable[Organisation],
    *,
    policy: DeduplicationPolicy | None = None,
    settings: Settings | None = None,
) -> DeduplicationResult:
    """Deduplicate in-memory records.

    An explicit ``policy`` wins over the one carried by ``settings``; when
    neither is given the cached application settings are used.
    """

    if policy is None:
        cfg = settings or get_settings()
        policy = cfg.policies.deduplication
    return DeduplicationProcessor(policy).process(records)


def deduplicate_file(
    input_path: str | Path,
    output_path: str | Path | None = None,
    *,
    settings: Settings | None = None,
) -> DeduplicationResult:
    """Load records from ``input_path``, deduplicate them and write the result JSON.

    Without ``output_path`` the result goes to ``paths.output_dir`` in the settings.
    """

    cfg = settings or get_settings()
    if output_path is None:
        output_path = cfg.paths.output_dir / DEFAULT_RESULT_FILENAME
    records = load_records(input_path)
    _LOGGER.info("Loaded records", count=len(records), source=str(input_path))

    result = deduplicate_records(records, settings=cfg)
    metadata = {
        "generated_at": utc_now().isoformat(),
        "policy_version": cfg.policy_version,
        "input": str(input_path),
        "policy": cfg.policies.deduplication.model_dump(mode="json"),
    }
    destination = write_result(result, output_path, metadata=metadata)
    _LOGGER.info(
        "Deduplication output written",
        destination=str(destination),
        records=result.deduplicated_count,
        merges=len(result.merged_records),
    )
    return result


__all__ = ["DEFAULT_RESULT_FILENAME", "deduplicate_file", "deduplicate_records"]
