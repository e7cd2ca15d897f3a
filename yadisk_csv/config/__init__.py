"""
Configuration loading and validation for Yandex Disk access.

Provides strongly typed settings objects read from environment variables
(and an optional .env file) with upfront validation.
"""
