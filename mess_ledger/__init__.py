"""
Mess Ledger - Source Package

Shared household expense ("bazaar") tracking and meal settlement for a
fixed roster of members across a calendar month.

DESIGN PRINCIPLES:
1. The actual spender always carries the cost
2. Fail early, fail visibly
3. Settlement is a pure projection of committed data
4. Every ledger action is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Mess Ledger Team"
