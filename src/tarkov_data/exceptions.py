"""
Custom exceptions for Tarkov quest data extraction.

Provides specific error types for different failure modes to enable
better error handling and debugging.
"""


class TarkovDataError(Exception):
    pass


class APIError(TarkovDataError):
    pass


class WikiError(TarkovDataError):
    pass


class ExtractionError(TarkovDataError):
    pass


class StoreError(TarkovDataError):
    pass


class JobError(TarkovDataError):
    pass


class PermissionDeniedError(TarkovDataError):
    def __init__(self, caller: str | None):
        self.caller = caller
        super().__init__(f"Caller '{caller}' is not an administrator")
