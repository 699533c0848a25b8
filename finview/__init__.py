"""FinView: experience API for bank accounts and their transaction ledgers."""
