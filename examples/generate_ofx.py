from decimal import Decimal
from pathlib import Path
import sys

# Ensure the repository root (with the 'ofxexport' package) is on PYTHONPATH when run from examples/
sys.path.append(str(Path(__file__).resolve().parents[1]))

from ofxexport.build_ofx import OfxFormatter, write_ofx
from ofxexport.models import AccountType
from ofxexport.selector import ExportSelector
from ofxexport.store import Store


def main():
    examples_dir = Path(__file__).resolve().parent
    out_path = examples_dir / "sample_export.ofx"

    with Store(":memory:") as store:
        checking = store.add_account("Checking", AccountType.BANK, "USD")
        groceries = store.add_account("Groceries", AccountType.EXPENSE, "USD")
        store.add_account("Savings", AccountType.BANK, "USD")

        store.add_transaction(checking, Decimal("1500.00"), "Payroll", 1704182400000)
        store.add_transaction(
            checking,
            Decimal("-42.50"),
            "Corner Market",
            1704268800000,
            description="Weekly shop",
            double_entry_account_uid=groceries,
        )

        formatter = OfxFormatter.from_selector(ExportSelector(store), export_all=False)
        write_ofx(formatter, out_path)

    print(f"Wrote OFX to {out_path}")


if __name__ == "__main__":
    main()
