"""Finances app package.

Holds the transaction log: purchases of capacity chunks, ordinary
bookings and billing runs all leave a ``Transaction`` row here. Real
payment settlement is out of scope; rows are recorded as already
completed when the purchase succeeds.
"""
