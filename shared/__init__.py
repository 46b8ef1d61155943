"""
Shared Kernel

Base building blocks reused by every bounded context of the parking
platform: entities, aggregates, domain events, value objects and the
transactional plumbing that publishes events after commit.
"""
