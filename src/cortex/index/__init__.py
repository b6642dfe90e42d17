"""Category indexes: the per-directory cache, its incremental store, reindex and prune."""
