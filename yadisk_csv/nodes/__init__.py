"""
Workflow node definitions: credential and parameter descriptors plus the
CSV append operation itself.
"""

from yadisk_csv.nodes.csv_append import YandexDiskCsvAppendNode

__all__ = ["YandexDiskCsvAppendNode"]
