import logging
from typing import List

from ofxexport.models import Account

logger = logging.getLogger(__name__)


class ExportSelector:
    """Decides which accounts go into an export and records what was exported.

    ``store`` is anything with ``get_all_accounts``, ``get_exportable_accounts``
    and ``mark_as_exported`` (see :class:`ofxexport.store.Store`).
    """

    def __init__(self, store):
        self._store = store

    def select_accounts(self, export_all: bool) -> List[Account]:
        if export_all:
            accounts = self._store.get_all_accounts()
        else:
            accounts = self._store.get_exportable_accounts()
        logger.debug(
            "Selected %d account(s) for export (export_all=%s)", len(accounts), export_all
        )
        return list(accounts)

    def mark_exported(self, account_uid: str) -> None:
        self._store.mark_as_exported(account_uid)
