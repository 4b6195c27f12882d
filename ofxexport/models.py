"""Accounts and transactions as they are exported to OFX."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Callable, List, Optional
from xml.etree.ElementTree import Element, SubElement

from ofxexport.date_time import ofx_timestamp_with_offset
from ofxexport.id import make_fitid

APP_ID = "org.gnucash.android"


class AccountType(Enum):
    CASH = "CASH"
    BANK = "BANK"
    CREDIT = "CREDIT"
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    PAYABLE = "PAYABLE"
    RECEIVABLE = "RECEIVABLE"
    EQUITY = "EQUITY"
    CURRENCY = "CURRENCY"
    STOCK = "STOCK"
    MUTUAL = "MUTUAL"

    def __str__(self) -> str:
        return self.value


class TransactionType(Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"

    def __str__(self) -> str:
        return self.value


def format_amount(value: Decimal) -> str:
    """Render *value* as a plain decimal string.

    Keeps the value's own precision (``12.50`` stays ``"12.50"``) and never
    switches to scientific notation.
    """

    return format(Decimal(value), "f")


def _leaf(parent: Element, tag: str, text: str) -> Element:
    node = SubElement(parent, tag)
    node.text = text
    return node


@dataclass
class Transaction:
    uid: str
    account_uid: str
    name: str
    amount: Decimal
    currency: str = "USD"
    type: TransactionType = TransactionType.DEBIT
    timestamp: int = 0  # epoch milliseconds
    description: str = ""
    double_entry_account_uid: Optional[str] = None
    double_entry_account_type: Optional[AccountType] = None
    exported: bool = False

    def to_xml(self, parent: Element, zone=None, bank_id: str = APP_ID) -> Element:
        """Append this transaction to *parent* as a ``STMTTRN`` element."""

        posted = ofx_timestamp_with_offset(self.timestamp, zone)

        stmttrn = SubElement(parent, "STMTTRN")
        _leaf(stmttrn, "TRNTYPE", str(self.type))
        _leaf(stmttrn, "DTPOSTED", posted)
        _leaf(stmttrn, "DTUSER", posted)
        _leaf(stmttrn, "TRNAMT", format_amount(self.amount))
        _leaf(stmttrn, "FITID", make_fitid(self))
        _leaf(stmttrn, "NAME", self.name)

        if self.description:
            _leaf(stmttrn, "MEMO", self.description)

        if self.double_entry_account_uid:
            bank_to = SubElement(stmttrn, "BANKACCTTO")
            _leaf(bank_to, "BANKID", bank_id)
            _leaf(bank_to, "ACCTID", self.double_entry_account_uid)
            acct_type = self.double_entry_account_type or AccountType.CASH
            _leaf(bank_to, "ACCTTYPE", str(acct_type))

        return stmttrn


TransactionLoader = Callable[[bool], List[Transaction]]


@dataclass
class Account:
    uid: str
    name: str
    account_type: AccountType = AccountType.CASH
    currency: str = "USD"
    balance: Decimal = Decimal("0")
    transaction_count: int = 0
    transactions: List[Transaction] = field(default_factory=list, repr=False)
    # set by the store so transactions are only read when serialized
    load_transactions: Optional[TransactionLoader] = field(
        default=None, repr=False, compare=False
    )

    def get_transactions(self, export_all: bool) -> List[Transaction]:
        if self.load_transactions is not None:
            return self.load_transactions(export_all)
        return [t for t in self.transactions if export_all or not t.exported]

    def to_xml(self, parent: Element, export_all: bool, zone=None, bank_id: str = APP_ID) -> None:
        """Append this account's ``STMTTRN`` elements to *parent*.

        Transactions already exported are left out unless *export_all*.
        """

        for transaction in self.get_transactions(export_all):
            if not export_all and transaction.exported:
                continue
            transaction.to_xml(parent, zone, bank_id)
