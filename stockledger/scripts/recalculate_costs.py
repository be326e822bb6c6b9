"""
Recalculate stored recipe and subrecipe costs from their lines.

Costs that drift from Σ(quantity × captured unit cost) by more than 0.01
are rewritten; everything else is left alone.

Usage:
    python -m stockledger.scripts.recalculate_costs              # every tenant
    python -m stockledger.scripts.recalculate_costs --tenant 3   # one tenant
    python -m stockledger.scripts.recalculate_costs --dry-run    # report only
"""

import argparse
import logging
import sys
from typing import List, Optional

from stockledger.config import settings
from stockledger.database import SessionLocal, unit_of_work
from stockledger.logging_config import configure_logging
from stockledger.services.recipe_costing import recompute_stored_costs

logger = logging.getLogger(__name__)


def run(session_factory=SessionLocal, tenant_id: Optional[int] = None, dry_run: bool = False) -> dict:
    db = session_factory()
    try:
        if dry_run:
            summary = recompute_stored_costs(db, tenant_id)
            db.rollback()
        else:
            with unit_of_work(db):
                summary = recompute_stored_costs(db, tenant_id)
    finally:
        db.close()
    return summary


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Recalculate stored recipe and subrecipe costs")
    parser.add_argument("--tenant", type=int, help="Only recalculate this tenant")
    parser.add_argument("--dry-run", action="store_true", help="Report differences without saving")
    args = parser.parse_args(argv)

    configure_logging(settings.LOG_LEVEL)

    summary = run(tenant_id=args.tenant, dry_run=args.dry_run)
    print(
        f"checked={summary['checked']} updated={summary['updated']} "
        f"unchanged={summary['unchanged']}{' (dry run)' if args.dry_run else ''}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
