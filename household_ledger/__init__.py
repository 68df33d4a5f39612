"""
Household Ledger - Source Package

A shared income and expense tracker for the members of one household,
backed by Firebase (Authentication and Firestore).

DESIGN PRINCIPLES:
1. Every signed-in user belongs to exactly one household
2. Validate locally, then write; never send a draft the UI rejected
3. Errors carry a closed kind; users see a sentence, never a backend code
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Household Ledger Team"
