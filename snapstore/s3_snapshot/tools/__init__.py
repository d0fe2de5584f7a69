"""
Command-line tools for the S3 snapshot store.

- snapshot_cli: list, load and delete snapshots of one entity
"""
