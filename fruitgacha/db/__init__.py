from fruitgacha.db.database import get_session, init_db, ledger_transaction
from fruitgacha.db.operations import (
    adjust_balance,
    count_owned,
    count_unique_owned,
    create_account,
    credit,
    debit,
    delete_account,
    get_account,
    get_or_create_account,
    insert_grant,
    list_ledger_entries,
    list_owned,
    lock_account,
)

__all__ = [
    "adjust_balance",
    "count_owned",
    "count_unique_owned",
    "create_account",
    "credit",
    "debit",
    "delete_account",
    "get_account",
    "get_or_create_account",
    "get_session",
    "init_db",
    "insert_grant",
    "ledger_transaction",
    "list_ledger_entries",
    "list_owned",
    "lock_account",
]
