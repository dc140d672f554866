"""File storage: reference classification and the blob store."""
