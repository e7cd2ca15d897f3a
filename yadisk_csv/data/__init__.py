"""
CSV text handling: header parsing, record-to-row mapping, serialization and
merging of appended rows into existing file content.
"""
