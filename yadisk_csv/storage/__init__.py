"""
Remote storage adapters.

Currently a single thin HTTP client for the Yandex Disk REST API.
"""
