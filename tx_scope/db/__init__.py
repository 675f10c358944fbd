"""Transaction registry, handle resolution and storage-engine adapters."""
