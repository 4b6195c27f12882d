"""SQLite store for accounts and transactions awaiting export."""

import logging
import sqlite3
from decimal import Decimal
from functools import partial
from pathlib import Path
from typing import Optional, Union

from ofxexport.id import new_uid
from ofxexport.models import Account, AccountType, Transaction, TransactionType

logger = logging.getLogger(__name__)

# columns a caller may change through update_transaction
_UPDATABLE_COLUMNS = (
    "name",
    "amount",
    "currency",
    "type",
    "timestamp",
    "description",
    "double_entry_account_uid",
)


class Store:
    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> "Store":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def initialize(self):
        """Create the schema if it does not exist yet."""
        conn = self.get_connection()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS accounts (
                uid          TEXT PRIMARY KEY,
                name         TEXT NOT NULL,
                account_type TEXT NOT NULL DEFAULT 'CASH',
                currency     TEXT NOT NULL DEFAULT 'USD'
            );

            CREATE TABLE IF NOT EXISTS transactions (
                uid                      TEXT PRIMARY KEY,
                account_uid              TEXT NOT NULL REFERENCES accounts(uid) ON DELETE CASCADE,
                name                     TEXT NOT NULL DEFAULT '',
                amount                   TEXT NOT NULL,
                currency                 TEXT NOT NULL DEFAULT 'USD',
                type                     TEXT NOT NULL CHECK(type IN ('CREDIT','DEBIT')),
                timestamp                INTEGER NOT NULL,
                description              TEXT NOT NULL DEFAULT '',
                double_entry_account_uid TEXT,
                exported                 INTEGER NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_transactions_account_uid ON transactions(account_uid);
            CREATE INDEX IF NOT EXISTS idx_transactions_exported    ON transactions(exported);
        """)
        conn.commit()

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

    # ---------- accounts ----------
    def add_account(
        self,
        name: str,
        account_type: AccountType = AccountType.CASH,
        currency: str = "USD",
        uid: Optional[str] = None,
    ) -> str:
        uid = uid or new_uid()
        conn = self.get_connection()
        conn.execute(
            "INSERT INTO accounts(uid, name, account_type, currency) VALUES (?, ?, ?, ?)",
            (uid, name, AccountType(account_type).value, currency),
        )
        conn.commit()
        return uid

    def _row_to_account(self, row) -> Account:
        conn = self.get_connection()
        amounts = conn.execute(
            "SELECT amount FROM transactions WHERE account_uid = ?", (row["uid"],)
        ).fetchall()
        return Account(
            uid=row["uid"],
            name=row["name"],
            account_type=AccountType(row["account_type"]),
            currency=row["currency"],
            balance=sum((Decimal(r["amount"]) for r in amounts), Decimal("0")),
            transaction_count=len(amounts),
            load_transactions=partial(self.get_transactions, row["uid"]),
        )

    def get_account(self, uid: str) -> Optional[Account]:
        conn = self.get_connection()
        row = conn.execute("SELECT * FROM accounts WHERE uid = ?", (uid,)).fetchone()
        return self._row_to_account(row) if row else None

    def get_all_accounts(self) -> list[Account]:
        conn = self.get_connection()
        rows = conn.execute("SELECT * FROM accounts ORDER BY name, uid").fetchall()
        return [self._row_to_account(r) for r in rows]

    def get_exportable_accounts(self) -> list[Account]:
        """Accounts holding at least one transaction not exported yet."""
        conn = self.get_connection()
        rows = conn.execute(
            """SELECT a.* FROM accounts a
               WHERE EXISTS (
                   SELECT 1 FROM transactions t
                   WHERE t.account_uid = a.uid AND t.exported = 0
               )
               ORDER BY a.name, a.uid"""
        ).fetchall()
        return [self._row_to_account(r) for r in rows]

    # ---------- transactions ----------
    def add_transaction(
        self,
        account_uid: str,
        amount: Union[Decimal, str, int],
        name: str = "",
        timestamp: int = 0,
        trntype: Optional[TransactionType] = None,
        currency: Optional[str] = None,
        description: str = "",
        double_entry_account_uid: Optional[str] = None,
        exported: bool = False,
        uid: Optional[str] = None,
    ) -> str:
        amount = Decimal(str(amount))
        if trntype is None:
            trntype = TransactionType.DEBIT if amount < 0 else TransactionType.CREDIT
        uid = uid or new_uid()

        conn = self.get_connection()
        if currency is None:
            row = conn.execute(
                "SELECT currency FROM accounts WHERE uid = ?", (account_uid,)
            ).fetchone()
            if row is None:
                raise KeyError(f"Unknown account: {account_uid}")
            currency = row["currency"]

        conn.execute(
            """INSERT INTO transactions(uid, account_uid, name, amount, currency, type,
                                        timestamp, description, double_entry_account_uid, exported)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                uid,
                account_uid,
                name,
                str(amount),
                currency,
                TransactionType(trntype).value,
                int(timestamp),
                description,
                double_entry_account_uid,
                int(exported),
            ),
        )
        conn.commit()
        return uid

    def update_transaction(self, uid: str, **fields) -> None:
        """Change a transaction; a modified transaction is exportable again."""
        unknown = sorted(set(fields) - set(_UPDATABLE_COLUMNS))
        if unknown:
            raise ValueError(f"Cannot update transaction fields: {', '.join(unknown)}")

        values = dict(fields)
        if "amount" in values:
            values["amount"] = str(Decimal(str(values["amount"])))
        if "type" in values:
            values["type"] = TransactionType(values["type"]).value

        assignments = [f"{col} = ?" for col in values] + ["exported = 0"]
        conn = self.get_connection()
        cursor = conn.execute(
            f"UPDATE transactions SET {', '.join(assignments)} WHERE uid = ?",
            (*values.values(), uid),
        )
        if cursor.rowcount == 0:
            raise KeyError(f"Unknown transaction: {uid}")
        conn.commit()

    def _row_to_transaction(self, row) -> Transaction:
        double_type = None
        if row["double_entry_account_type"]:
            double_type = AccountType(row["double_entry_account_type"])
        return Transaction(
            uid=row["uid"],
            account_uid=row["account_uid"],
            name=row["name"],
            amount=Decimal(row["amount"]),
            currency=row["currency"],
            type=TransactionType(row["type"]),
            timestamp=row["timestamp"],
            description=row["description"],
            double_entry_account_uid=row["double_entry_account_uid"],
            double_entry_account_type=double_type,
            exported=bool(row["exported"]),
        )

    def get_transactions(self, account_uid: str, export_all: bool = True) -> list[Transaction]:
        conn = self.get_connection()
        sql = """
            SELECT t.*, d.account_type AS double_entry_account_type
            FROM transactions t
            LEFT JOIN accounts d ON t.double_entry_account_uid = d.uid
            WHERE t.account_uid = ?
        """
        if not export_all:
            sql += " AND t.exported = 0"
        sql += " ORDER BY t.timestamp ASC, t.uid ASC"
        rows = conn.execute(sql, (account_uid,)).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    def mark_as_exported(self, account_uid: str) -> int:
        """Flag every transaction of the account as exported."""
        conn = self.get_connection()
        cursor = conn.execute(
            "UPDATE transactions SET exported = 1 WHERE account_uid = ? AND exported = 0",
            (account_uid,),
        )
        conn.commit()
        logger.debug("Marked %s transaction(s) of %s as exported", cursor.rowcount, account_uid)
        return cursor.rowcount
