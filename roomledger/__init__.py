"""roomledger — shared-living expense ledger and settlement engine."""
