"""List paid orders whose fulfillment is incomplete, and optionally re-run it."""

import argparse
import json

from dirttrails.core.database import SessionLocal
from dirttrails.core.logging import configure_logging
import dirttrails.models  # noqa: F401
from dirttrails.services.fulfillment import find_unfulfilled_orders, refulfill_order


def main() -> None:
    parser = argparse.ArgumentParser(description="Report (and optionally repair) partially fulfilled orders.")
    parser.add_argument("--limit", type=int, default=100)
    parser.add_argument("--repair", action="store_true", help="re-run fulfillment for each order found")
    args = parser.parse_args()

    configure_logging()
    db = SessionLocal()
    try:
        rows = []
        for order in find_unfulfilled_orders(db, limit=args.limit):
            row = {"order_id": order.id, "reference": order.reference, "paid_at": str(order.paid_at)}
            if args.repair:
                report = refulfill_order(db, order)
                row["repaired"] = bool(report and report.is_complete)
                row["warnings"] = [str(w) for w in report.warnings] if report else ["no completed payment"]
            rows.append(row)
        print(json.dumps({"count": len(rows), "orders": rows}, indent=2))
    finally:
        db.close()


if __name__ == "__main__":
    main()
