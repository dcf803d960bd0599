"""Seed the shop with common Indian medicines, each received as one or two batches."""
from datetime import date

from medshop.db.init_db import init_db
from medshop.db.session import SessionLocal
from medshop.models.medicine import Medicine
from medshop.services.batch_store import add_stock


def _month(offset: int) -> str:
    """YYYY-MM string `offset` months from now, the way expiry is printed on a strip."""
    today = date.today()
    total = today.year * 12 + (today.month - 1) + offset
    return f"{total // 12:04d}-{total % 12 + 1:02d}"


# name, category, manufacturer, shelf, selling price, [(batch, months to expiry, units), ...]
MEDICINES = [
    ("Paracetamol 500mg", "Analgesic", "GSK", "A-1", 2.50, [("PCM2401", 3, 80), ("PCM2407", 14, 120)]),
    ("Dolo 650", "Analgesic", "Micro Labs", "A-1", 3.00, [("DL2405", 10, 180)]),
    ("Crocin Advance", "Analgesic", "GSK", "A-2", 4.50, [("CR2402", 1, 30), ("CR2409", 18, 120)]),
    ("Azithromycin 500mg", "Antibiotic", "Cipla", "B-1", 15.00, [("AZ2403", 12, 80)]),
    ("Amoxicillin 500mg", "Antibiotic", "Sun Pharma", "B-1", 8.00, [("AMX2311", -1, 20), ("AMX2406", 9, 80)]),
    ("Cetirizine 10mg", "Antihistamine", "Dr. Reddy's", "A-3", 1.50, [("CTZ2404", 20, 250)]),
    ("Pan 40 (Pantoprazole)", "Antacid", "Alkem", "C-1", 6.00, [("PAN2405", 15, 120)]),
    ("Omez (Omeprazole)", "Antacid", "Dr. Reddy's", "C-1", 4.50, [("OMZ2402", 2, 40), ("OMZ2408", 16, 100)]),
    ("Metformin 500mg", "Antidiabetic", "USV", "D-2", 1.00, [("MET2406", 24, 200)]),
    ("Glimepiride 1mg", "Antidiabetic", "Sanofi", "D-2", 3.50, [("GLM2404", 11, 8)]),
    ("Atorvastatin 10mg", "Cardiac", "Zydus", "D-1", 4.00, [("ATV2405", 13, 120)]),
    ("Amlodipine 5mg", "Cardiac", "Cipla", "D-1", 2.50, [("AML2403", 7, 150)]),
    ("ORS Sachet", "General", "FDC", "E-1", 20.00, [("ORS2406", None, 60)]),
]


def seed_inventory():
    init_db()
    db = SessionLocal()
    try:
        if db.query(Medicine).count():
            print("Inventory already has medicines, nothing to seed.")
            return

        batches = 0
        for name, category, manufacturer, shelf, price, lots in MEDICINES:
            for batch_number, months, units in lots:
                add_stock(
                    db,
                    {"name": name, "category": category, "manufacturer": manufacturer, "shelf_number": shelf},
                    {
                        "batch_number": batch_number,
                        "expiry_date": _month(months) if months is not None else None,
                        "quantity": units,
                        "purchase_price": round(price * 0.8, 2),
                        "selling_price": price,
                    },
                )
                batches += 1

        print(f"Seeded {len(MEDICINES)} medicines in {batches} batches.")
    finally:
        db.close()


if __name__ == "__main__":
    seed_inventory()
