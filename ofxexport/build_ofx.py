"""Build OFX documents from the accounts in the local store.

Every run produces a single ``BANKMSGSRSV1/STMTTRNRS`` envelope holding one
``STMTRS`` statement per account that has transactions::

    BANKMSGSRSV1
      STMTTRNRS
        TRNUID          0
        STMTRS
          CURDEF
          BANKACCTFROM  (BANKID, ACCTID, ACCTTYPE)
          BANKTRANLIST  (DTSTART, DTEND, STMTTRN...)
          LEDGERBAL     (BALAMT, DTASOF)

The statement dates carry the time of the export, sampled once per run so
that every account in a document shares the same timestamp.  Transactions
of an account are flagged as exported right after its statement is in the
tree.  A failure part way through stops the run; accounts flagged before
the failure stay flagged.
"""

import logging
from pathlib import Path
from typing import Callable, Sequence, Union
from xml.etree import ElementTree as ET
from xml.etree.ElementTree import Element, SubElement

import pandas as pd

from ofxexport.date_time import Instant, ofx_timestamp_with_offset
from ofxexport.models import APP_ID, Account, format_amount
from ofxexport.selector import ExportSelector

logger = logging.getLogger(__name__)

# The exported data is not the answer to a client request, so there is no
# client transaction id to echo back.
UNSOLICITED_TRANSACTION_ID = "0"

OFX_HEADER = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<?OFX OFXHEADER="200" VERSION="211" SECURITY="NONE" '
    'OLDFILEUID="NONE" NEWFILEUID="NONE"?>\n'
)


def _utcnow() -> pd.Timestamp:
    return pd.Timestamp.now(tz="UTC")


def _leaf(tag: str, text: str) -> Element:
    node = Element(tag)
    node.text = text
    return node


class OfxFormatter:
    """One export run over a fixed list of accounts."""

    def __init__(
        self,
        accounts: Sequence[Account],
        export_all: bool,
        *,
        selector: ExportSelector,
        bank_id: str = APP_ID,
        clock: Callable[[], Instant] = _utcnow,
        zone=None,
    ):
        self._accounts = tuple(accounts)
        self._export_all = bool(export_all)
        self._selector = selector
        self._bank_id = bank_id
        self._clock = clock
        self._zone = zone

    @classmethod
    def from_selector(cls, selector: ExportSelector, export_all: bool, **kwargs) -> "OfxFormatter":
        return cls(selector.select_accounts(export_all), export_all, selector=selector, **kwargs)

    @property
    def accounts(self) -> tuple:
        return self._accounts

    @property
    def export_all(self) -> bool:
        return self._export_all

    def _statement(self, account: Account, now: str) -> tuple[Element, Element]:
        """Return the ``STMTRS`` element of *account* and its ``BANKTRANLIST``."""

        currency = _leaf("CURDEF", account.currency)

        bank_from = Element("BANKACCTFROM")
        bank_from.append(_leaf("BANKID", self._bank_id))
        bank_from.append(_leaf("ACCTID", account.uid))
        bank_from.append(_leaf("ACCTTYPE", str(account.account_type)))

        ledger_balance = Element("LEDGERBAL")
        ledger_balance.append(_leaf("BALAMT", format_amount(account.balance)))
        ledger_balance.append(_leaf("DTASOF", now))

        tran_list = Element("BANKTRANLIST")
        tran_list.append(_leaf("DTSTART", now))
        tran_list.append(_leaf("DTEND", now))

        statement = Element("STMTRS")
        statement.append(currency)
        statement.append(bank_from)
        statement.append(tran_list)
        statement.append(ledger_balance)
        return statement, tran_list

    def to_xml(self, parent: Element) -> Element:
        """Add the bank message set for all accounts under *parent*.

        Returns the ``BANKMSGSRSV1`` element.
        """

        bank_msgs = SubElement(parent, "BANKMSGSRSV1")
        response = SubElement(bank_msgs, "STMTTRNRS")
        response.append(_leaf("TRNUID", UNSOLICITED_TRANSACTION_ID))

        now = ofx_timestamp_with_offset(self._clock(), self._zone)

        exported = 0
        for account in self._accounts:
            if account.transaction_count == 0:
                logger.debug("Skipping account %s without transactions", account.uid)
                continue

            statement, tran_list = self._statement(account, now)
            response.append(statement)

            account.to_xml(tran_list, self._export_all, self._zone, self._bank_id)
            self._selector.mark_exported(account.uid)
            exported += 1

        logger.info("Exported %d of %d account(s) to OFX", exported, len(self._accounts))
        return bank_msgs


def build_document(formatter: OfxFormatter) -> Element:
    root = Element("OFX")
    formatter.to_xml(root)
    return root


def build_ofx(formatter: OfxFormatter) -> str:
    """Run *formatter* and return the complete OFX file contents."""

    root = build_document(formatter)
    ET.indent(root, space="  ")
    return OFX_HEADER + ET.tostring(root, encoding="unicode") + "\n"


def write_ofx(formatter: OfxFormatter, path: Union[str, Path]) -> Path:
    out_path = Path(path)
    ofx_text = build_ofx(formatter)
    out_path.write_text(ofx_text, encoding="utf-8")
    return out_path
