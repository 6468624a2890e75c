"""Services package: ledger store, balance accrual, transfers, and read-side aggregators."""
