"""
Reconcile Profiles Script
Bootstraps a profile for every registered principal and converges the
reserved super admin profile. Safe to run repeatedly (manually, after a
deploy, or as part of a nightly job).

Exits with status 1 when any profile could not be written.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.config.settings import settings
from app.database.backends import create_backend
from app.modules.bootstrap.service import BootstrapService
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main(super_admin_only: bool = False) -> int:
    backend = create_backend(settings)
    bootstrap = BootstrapService(backend.store, backend.directory, settings)

    if super_admin_only:
        logger.info("Reconciling super admin profile...")
        outcome = bootstrap.reconcile_super_admin()
        if outcome.degraded:
            logger.error(f"Super admin reconciliation failed: {outcome.error}")
            return 1
        logger.info(f"Super admin reconciled (changed={outcome.changed})")
        return 0

    logger.info("Reconciling all profiles...")
    report = bootstrap.reconcile_all()
    logger.info(f"Processed {report.principals_processed} principal(s)")
    if report.degraded_principal_ids:
        logger.error(f"{len(report.degraded_principal_ids)} profile(s) could not be bootstrapped")
    if report.super_admin.degraded:
        logger.error(f"Super admin reconciliation failed: {report.super_admin.error}")
    if report.degraded_principal_ids or report.super_admin.degraded:
        return 1
    logger.info("Reconciliation completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main(super_admin_only="--super-admin-only" in sys.argv[1:]))
