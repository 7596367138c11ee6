# accounting/__init__.py
"""
Accounting app - double-entry ledger core.

This app provides:
- AccountType / Account: chart of accounts with hierarchy
- JournalEntry / JournalLine: draft, post, reverse, void
- LedgerEntry: append-only postings per account
- FiscalYear / FiscalPeriod: fiscal calendar, period and year-end closing
- Reports: trial balance, account balances and statements

Commands (accounting/commands.py) are the entry point for all mutations.
"""
