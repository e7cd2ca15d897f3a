"""
yadisk_csv – append rows to CSV files stored on Yandex Disk.

Implements a workflow node that downloads a remote CSV, maps incoming
records onto its header, and uploads the merged file back.
"""

__version__ = "0.1.0"
