"""
pagesync - incremental, content-addressed page synchronizer.

Keeps a local paged database file in step with snapshots published on a
content network, fetching only the pages whose fingerprints changed.
"""

__version__ = "0.1.0"
