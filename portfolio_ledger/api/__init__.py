"""HTTP interface for the portfolio ledger."""
