"""Pipeline Logger for CostScan document intake.

Provides highly visible, formatted logging for pipeline runs with
distinctive visual markers that stand out in log streams.
"""

import structlog
from datetime import datetime, timezone
from typing import Dict, Optional

logger = structlog.get_logger()

# Visual markers for different log types
BANNER_WIDTH = 80
PIPELINE_BANNER_CHAR = "█"
FILE_BANNER_CHAR = "─"


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_pipeline_start(project_id: str, file_count: int, provider: Optional[str]) -> None:
    """Log pipeline start with prominent banner."""
    print("\n")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PIPELINE_BANNER_CHAR, "COSTSCAN INTAKE PIPELINE STARTED"))
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Project ID : {project_id}")
    print(f"║ Timestamp  : {_timestamp()}")
    print(f"║ Files      : {file_count}")
    print(f"║ Provider   : {provider or 'none (simulation)'}")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info(
        "pipeline_start_logged",
        project_id=project_id,
        file_count=file_count,
        provider=provider
    )


def log_pipeline_complete(
    project_id: str,
    source: str,
    total_cost: float,
    accuracy: float,
    duration_ms: int,
    file_statuses: Dict[str, str]
) -> None:
    """Log pipeline completion with summary."""
    failed = sum(1 for status in file_statuses.values() if status == "error")

    print("\n")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(PIPELINE_BANNER_CHAR, "✓ PIPELINE COMPLETED"))
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Project ID   : {project_id}")
    print(f"║ Timestamp    : {_timestamp()}")
    print(f"║ Duration     : {duration_ms:,} ms ({duration_ms / 1000:.2f}s)")
    print(f"║ Source       : {source}")
    print(f"║ Total Cost   : ${total_cost:,.2f}")
    print(f"║ Accuracy     : {accuracy:.1f}%")
    print(f"║ Files        : {len(file_statuses)} ({failed} failed)")
    print(PIPELINE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info(
        "pipeline_complete_logged",
        project_id=project_id,
        source=source,
        total_cost=total_cost,
        accuracy=accuracy,
        duration_ms=duration_ms,
        failed_files=failed
    )


def log_pipeline_failed(project_id: str, error: str, code: Optional[str] = None) -> None:
    """Log pipeline failure with details."""
    print("\n")
    print("!" * BANNER_WIDTH)
    print(_create_banner("!", "✗ PIPELINE FAILED"))
    print("!" * BANNER_WIDTH)
    print(f"║ Project ID : {project_id}")
    print(f"║ Timestamp  : {_timestamp()}")
    print(f"║ Code       : {code or 'UNKNOWN'}")
    print(f"║ Error      : {error}")
    print(f"║ Status     : reverted to draft")
    print("!" * BANNER_WIDTH)
    print("\n")

    logger.error(
        "pipeline_failed_logged",
        project_id=project_id,
        code=code,
        error=error
    )


def log_file_result(
    project_id: str,
    file_name: str,
    status: str,
    duration_ms: int = 0,
    item_count: int = 0,
    error: Optional[str] = None
) -> None:
    """Log one file's processing outcome."""
    marker = "✓" if status == "completed" else "✗"

    print(FILE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(FILE_BANNER_CHAR, f"{marker} FILE: {file_name}"))
    print(f"║ Status   : {status.upper()}")
    print(f"║ Duration : {duration_ms:,} ms")
    print(f"║ Items    : {item_count}")
    if error:
        print(f"║ Error    : {error}")
    print(FILE_BANNER_CHAR * BANNER_WIDTH)

    log = logger.warning if error else logger.info
    log(
        "file_result_logged",
        project_id=project_id,
        file_name=file_name,
        status=status,
        duration_ms=duration_ms,
        item_count=item_count,
        error=error
    )
