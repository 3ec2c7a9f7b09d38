"""Infrastructure layer: filesystem, schema loading, snapshots.

The filesystem is authoritative: nothing here caches state across
invocations. Every index is rebuilt from files on demand.
"""
