#!/usr/bin/env python3
"""
EVDMS Database Initialization Script
Creates database tables and optionally seeds demo data
"""
import argparse
import sys
from pathlib import Path

# Add project root to path to import evdms
sys.path.append(str(Path(__file__).parent.parent))

from evdms.core.database import SessionLocal, check_db_connection, init_db
from evdms.core.logging import setup_logging
from evdms.models import CentralInventoryPart, PurchaseOrder, PurchaseOrderItem, ServiceCenter

logger = setup_logging()

DEMO_SERVICE_CENTERS = [
    {"code": "BLR01", "name": "Bengaluru Central Service"},
    {"code": "MUM02", "name": "Mumbai West Service"},
]

DEMO_PARTS = [
    {"part_name": "Brake Pad Set", "part_number": "BP-100", "category": "Brakes",
     "unit_price": 1450, "cost_price": 1100, "gst_rate": 18, "min_stock_level": 10, "stock_quantity": 100},
    {"part_name": "Battery Coolant", "part_number": "BC-220", "category": "Battery",
     "unit_price": 650, "cost_price": 480, "gst_rate": 18, "min_stock_level": 20, "stock_quantity": 250},
    {"part_name": "Charging Port Cover", "part_number": "CP-031", "category": "Charging",
     "unit_price": 320, "cost_price": 210, "gst_rate": 12, "min_stock_level": 5, "stock_quantity": 40},
]


def seed_demo_data():
    """Insert demo service centers, parts and one purchase order if the tables are empty"""
    db = SessionLocal()
    try:
        if db.query(ServiceCenter).count():
            logger.info("Demo data already present, skipping seed")
            return

        db.add_all(ServiceCenter(**data) for data in DEMO_SERVICE_CENTERS)
        parts = [CentralInventoryPart(allocated=0, **data) for data in DEMO_PARTS]
        db.add_all(parts)
        db.flush()

        purchase_order = PurchaseOrder(po_number="PO-2026-0001", status="APPROVED", supplier_name="Volt Components")
        purchase_order.items.append(PurchaseOrderItem(
            central_inventory_part_id=parts[0].id,
            part_name=parts[0].part_name,
            part_number=parts[0].part_number,
            quantity=20,
        ))
        db.add(purchase_order)
        db.commit()
        logger.info(f"Seeded {len(DEMO_SERVICE_CENTERS)} service centers, {len(parts)} parts and 1 purchase order")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create EVDMS tables")
    parser.add_argument("--seed", action="store_true", help="Insert demo data")
    args = parser.parse_args()

    if not check_db_connection():
        logger.error("Database is not reachable; check DATABASE_URL")
        return 1

    init_db()
    if args.seed:
        seed_demo_data()
    return 0


if __name__ == "__main__":
    sys.exit(main())
