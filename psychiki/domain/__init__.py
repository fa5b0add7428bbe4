"""Framework-free business rules (codes, verification lifecycle, step ledger)."""
