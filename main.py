"""
main.py

Export the accounts and transactions in the local database to an OFX file
that other finance software can import.

Usage:
    pip3 install -e .  # installs pandas, python-dateutil, PyYAML
    python main.py

Settings come from the file named by OFX_CONFIG (JSON or YAML) and the
OFX_DB_PATH, OFX_OUTPUT, OFX_EXPORT_ALL and OFX_BANK_ID environment variables.
By default only transactions not exported before are written.
"""

import logging
import os
from pathlib import Path

from ofxexport.build_ofx import OfxFormatter, write_ofx
from ofxexport.config import load_config
from ofxexport.selector import ExportSelector
from ofxexport.store import Store
from ofxexport.models import APP_ID


def main(
    db_path: Path,
    output_path: Path,
    export_all: bool = False,
    bank_id: str = APP_ID,
) -> int:
    """Write the OFX export and return the number of statements in it."""

    if not Path(db_path).exists():
        print(f"Nothing to export; missing database at {db_path}")
        return 0

    with Store(db_path) as store:
        selector = ExportSelector(store)
        formatter = OfxFormatter.from_selector(selector, export_all, bank_id=bank_id)
        statements = sum(1 for a in formatter.accounts if a.transaction_count)
        if not statements:
            print("No new transactions to export")
            return 0
        out_path = write_ofx(formatter, output_path)

    print(f"OFX with {statements} account statement(s) written to {out_path}")
    return statements


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.DEBUG if os.environ.get('OFX_DEBUG') else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    config = load_config(os.environ.get('OFX_CONFIG') or None)
    main(
        db_path=config.db_path,
        output_path=config.output_path,
        export_all=config.export_all,
        bank_id=config.bank_id,
    )
