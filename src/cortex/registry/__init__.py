"""Named stores: local and global registries and name resolution."""
