"""Bulk bookings app package.

An event coordinator buys a chunk of parking-spot capacity for a date
range and hands slices of it (sub-bookings) to individual customers.
This app owns both records and the allocation engine that keeps the
chunk counters equal to the sum of its active slices. Every capacity
change happens inside one database transaction with the chunk row
locked, and the counters are moved with a guarded conditional UPDATE
backed by check constraints.
"""
