"""Data providers, one per backend family."""

from sinkview.logs.providers.base import DataProvider, default_provider_name
from sinkview.logs.providers.elasticsearch import ElasticsearchDataProvider
from sinkview.logs.providers.mongo import MongoDataProvider
from sinkview.logs.providers.sql import SqlDataProvider

__all__ = [
    "DataProvider",
    "default_provider_name",
    "ElasticsearchDataProvider",
    "MongoDataProvider",
    "SqlDataProvider",
]
