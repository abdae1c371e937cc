"""
Tijarati - Host Data Core

The privileged half of a local-first bookkeeping app. It owns the ledger
store, the app lock and the debt reminders, and answers typed requests sent
by an untrusted presentation layer over a message bridge.

DESIGN PRINCIPLES:
1. Every request with an id gets exactly one answer
2. Bulk changes are all-or-nothing
3. No reminder outlives its transaction
4. The PIN never touches disk in cleartext
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Tijarati Team"
