from __future__ import annotations

import argparse
import logging

from app.core.db import session_scope
from app.models.setting import Setting
from app.services import threshold_policy
from app.services.approval_policy import APPROVAL_THRESHOLD_KEY, SETTINGS_CATEGORY

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the organization-wide approval threshold.")
    parser.add_argument(
        "--threshold",
        default="MAJORITY",
        choices=[kind.value for kind in threshold_policy.ThresholdKind],
        help="Threshold kind to store when none is set yet",
    )
    parser.add_argument("--force", action="store_true", help="Overwrite an existing value")
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    args = parse_args()
    with session_scope() as db:
        setting = db.query(Setting).filter(Setting.key == APPROVAL_THRESHOLD_KEY).first()
        if setting is not None and not args.force:
            print(f"Approval threshold already set to {setting.value}")
            return
        if setting is None:
            setting = Setting(key=APPROVAL_THRESHOLD_KEY, category=SETTINGS_CATEGORY)
            db.add(setting)
        setting.value = args.threshold
    logger.info("approval_threshold_initialized", extra={"threshold": args.threshold})
    print(f"Approval threshold set to {args.threshold}")


if __name__ == "__main__":
    main()
