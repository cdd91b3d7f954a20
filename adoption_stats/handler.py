"""
AWS Lambda entrypoint for the adoption stats report

Event-driven handler triggered by EventBridge Scheduler or a direct invoke.
"""

import asyncio
import logging
from typing import Dict, Any, Optional

from adoption_stats.jobs.stats_sync import run_stats_report
from adoption_stats.orchestrator_stats import StatsPipeline

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def lambda_handler(event: Optional[Dict[str, Any]], context: Any, pipeline: Optional[StatsPipeline] = None) -> Dict[str, Any]:
    """
    Build the download report for the window named in the event.

    Expected event payloads:
    - {} (default window: last six months)
    - {"from": "2024-01", "to": "2024-06"}
    - {"from": "2024-01-15", "to": "2024-02-10", "versions": false}

    Returns:
        Dictionary with statusCode and the report or an error message
    """
    payload = event or {}
    logger.info(f"Lambda invoked with window: {payload.get('from')}..{payload.get('to')}")

    try:
        report = asyncio.run(
            run_stats_report(
                pipeline=pipeline,
                from_value=payload.get("from"),
                to_value=payload.get("to"),
                include_versions=bool(payload.get("versions", True)),
            )
        )
    except ValueError as e:
        logger.warning(f"Rejected stats window: {e}")
        return {"statusCode": 400, "error": str(e)}
    except Exception as e:
        logger.error(f"Lambda execution failed: {e}", exc_info=True)
        return {"statusCode": 500, "error": str(e)}

    logger.info(f"Stats report completed with {len(report['errors'])} skipped units")
    return {"statusCode": 200, "result": report}
