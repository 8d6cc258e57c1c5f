"""
Recurring Income - Source Package

Schedules recurring income sources (salary, freelance, etc.) and posts
matching income transactions into the ledger on the right calendar dates.

DESIGN PRINCIPLES:
1. Date math is pure and deterministic
2. Posting is the only side effect
3. The watermark advance is the commit point
4. Missed occurrences are caught up, never duplicated
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Recurring Income Team"
