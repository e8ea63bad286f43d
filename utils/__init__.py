"""
Shared infrastructure for the archiver: configuration, logging, durable stores
(fetch cursor, retry ledger), record schemas and the bookmarking service client.
"""
