import itertools
import sys
from decimal import Decimal
from pathlib import Path
from xml.etree.ElementTree import Element

import pandas as pd
import pytest
from dateutil import tz

sys.path.append(str(Path(__file__).resolve().parents[1]))

from ofxexport.build_ofx import OFX_HEADER, OfxFormatter, build_document, build_ofx, write_ofx
from ofxexport.models import Account, AccountType, Transaction
from ofxexport.selector import ExportSelector
from ofxexport.store import Store

FIXED_NOW = pd.Timestamp("2024-01-05 09:30:00", tz="UTC")
FIXED_NOW_TEXT = "20240105093000[0:UTC]"


class RecordingSelector:
    def __init__(self):
        self.marked = []

    def mark_exported(self, account_uid):
        self.marked.append(account_uid)


def _txn(uid, account_uid, amount="1.00", exported=False):
    return Transaction(
        uid=uid,
        account_uid=account_uid,
        name=f"payee {uid}",
        amount=Decimal(amount),
        timestamp=1704400000000,
        exported=exported,
    )


def _account(uid, transactions=(), **kwargs):
    transactions = list(transactions)
    kwargs.setdefault("balance", sum((t.amount for t in transactions), Decimal("0")))
    return Account(
        uid=uid,
        name=uid.title(),
        transaction_count=len(transactions),
        transactions=transactions,
        **kwargs,
    )


def _formatter(accounts, export_all=False, selector=None, **kwargs):
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    kwargs.setdefault("zone", tz.tzutc())
    return OfxFormatter(accounts, export_all, selector=selector or RecordingSelector(), **kwargs)


@pytest.fixture
def store():
    with Store(":memory:") as s:
        yield s


def test_envelope_is_built_once_under_parent():
    parent = Element("OFX")
    bank_msgs = _formatter([]).to_xml(parent)

    assert list(parent) == [bank_msgs]
    assert bank_msgs.tag == "BANKMSGSRSV1"
    response = bank_msgs.find("STMTTRNRS")
    assert [c.tag for c in response] == ["TRNUID"]
    assert response.findtext("TRNUID") == "0"


def test_accounts_without_transactions_are_skipped():
    selector = RecordingSelector()
    a = _account("a")
    b = _account("b", [_txn("t1", "b"), _txn("t2", "b")])

    root = build_document(_formatter([a, b], selector=selector))
    statements = root.findall("BANKMSGSRSV1/STMTTRNRS/STMTRS")

    assert len(statements) == 1
    assert statements[0].findtext("BANKACCTFROM/ACCTID") == "b"
    assert selector.marked == ["b"]


def test_statement_structure_and_order():
    account = _account(
        "checking",
        [_txn("t1", "checking", "10.25"), _txn("t2", "checking", "2.25")],
        account_type=AccountType.BANK,
        currency="CAD",
    )

    root = build_document(_formatter([account]))
    stmtrs = root.find("BANKMSGSRSV1/STMTTRNRS/STMTRS")

    assert [c.tag for c in stmtrs] == ["CURDEF", "BANKACCTFROM", "BANKTRANLIST", "LEDGERBAL"]
    assert stmtrs.findtext("CURDEF") == "CAD"

    bank_from = stmtrs.find("BANKACCTFROM")
    assert [c.tag for c in bank_from] == ["BANKID", "ACCTID", "ACCTTYPE"]
    assert [c.text for c in bank_from] == ["org.gnucash.android", "checking", "BANK"]

    ledger = stmtrs.find("LEDGERBAL")
    assert [c.tag for c in ledger] == ["BALAMT", "DTASOF"]
    assert ledger.findtext("BALAMT") == "12.50"
    assert ledger.findtext("DTASOF") == FIXED_NOW_TEXT

    tran_list = stmtrs.find("BANKTRANLIST")
    assert [c.tag for c in tran_list] == ["DTSTART", "DTEND", "STMTTRN", "STMTTRN"]
    assert tran_list.findtext("DTSTART") == FIXED_NOW_TEXT
    assert tran_list.findtext("DTEND") == FIXED_NOW_TEXT


def test_bank_id_can_be_overridden():
    account = _account("a", [_txn("t1", "a")])
    root = build_document(_formatter([account], bank_id="example.bank"))

    assert root.findtext(".//BANKACCTFROM/BANKID") == "example.bank"


def test_statements_share_one_envelope_in_account_order():
    accounts = [_account(uid, [_txn(f"{uid}-1", uid)]) for uid in ("z", "m", "a")]
    root = build_document(_formatter(accounts))

    assert len(root.findall("BANKMSGSRSV1")) == 1
    assert len(root.findall(".//STMTTRNRS")) == 1
    assert [s.findtext("BANKACCTFROM/ACCTID") for s in root.iter("STMTRS")] == ["z", "m", "a"]


def test_timestamp_is_sampled_once_per_run():
    ticks = itertools.count()
    calls = []

    def clock():
        calls.append(1)
        return FIXED_NOW + pd.Timedelta(seconds=next(ticks))

    accounts = [_account(uid, [_txn(f"{uid}-1", uid)]) for uid in ("a", "b", "c")]
    root = build_document(_formatter(accounts, clock=clock))

    stamps = {
        e.text for tag in ("DTASOF", "DTSTART", "DTEND") for e in root.iter(tag)
    }
    assert stamps == {FIXED_NOW_TEXT}
    assert len(calls) == 1


def test_export_all_flag_reaches_account_serializer():
    txns = [_txn("old", "a", exported=True), _txn("new", "a")]

    only_new = build_document(_formatter([_account("a", txns)], export_all=False))
    everything = build_document(_formatter([_account("a", txns)], export_all=True))

    assert [e.text for e in only_new.iter("FITID")] == ["new"]
    assert [e.text for e in everything.iter("FITID")] == ["old", "new"]


def test_failure_stops_marking_later_accounts():
    selector = RecordingSelector()

    def broken_loader(export_all):
        raise RuntimeError("store unreadable")

    good = _account("good", [_txn("t1", "good")])
    broken = Account(uid="broken", name="Broken", transaction_count=1, load_transactions=broken_loader)
    later = _account("later", [_txn("t2", "later")])

    with pytest.raises(RuntimeError, match="store unreadable"):
        build_document(_formatter([good, broken, later], selector=selector))

    assert selector.marked == ["good"]


def test_same_clock_gives_identical_output():
    first = build_ofx(_formatter([]))
    second = build_ofx(_formatter([]))

    assert first == second
    assert first.startswith(OFX_HEADER)
    assert "<TRNUID>0</TRNUID>" in first


def test_from_selector_snapshots_accounts(store):
    a = store.add_account("A", uid="acct-a")
    b = store.add_account("B", uid="acct-b")
    store.add_transaction(a, "5.00", "old", exported=True)
    store.add_transaction(b, "7.00", "new")
    selector = ExportSelector(store)

    default_run = OfxFormatter.from_selector(selector, False)
    full_run = OfxFormatter.from_selector(selector, True)

    assert [acct.uid for acct in default_run.accounts] == ["acct-b"]
    assert [acct.uid for acct in full_run.accounts] == ["acct-a", "acct-b"]
    assert full_run.export_all is True


def test_export_marks_transactions_and_next_run_is_empty(store, tmp_path):
    cash = store.add_account("Cash", AccountType.CASH, "USD")
    store.add_transaction(cash, "-3.10", "coffee", 1704400000000, description="flat white")
    selector = ExportSelector(store)

    out_path = write_ofx(
        OfxFormatter.from_selector(selector, False, clock=lambda: FIXED_NOW, zone=tz.tzutc()),
        tmp_path / "export.ofx",
    )
    text = out_path.read_text(encoding="utf-8")

    assert "<MEMO>flat white</MEMO>" in text
    assert "<BALAMT>-3.10</BALAMT>" in text
    assert store.get_exportable_accounts() == []

    again = build_document(OfxFormatter.from_selector(selector, False, zone=tz.tzutc()))
    assert again.findall(".//STMTRS") == []

    everything = build_document(OfxFormatter.from_selector(selector, True, zone=tz.tzutc()))
    assert [e.text for e in everything.iter("NAME")] == ["coffee"]
