"""Fetchers for price data from the extraction service."""

from sentinel.fetchers.extractor import ExtractionGateway

__all__ = ["ExtractionGateway"]
