"""backupz: pull remote data into a ZFS dataset and rotate its snapshots."""

__version__ = "0.3.0"
