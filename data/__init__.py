from data.history import HistoricalDataSource, InMemoryDataSource, JsonFileDataSource, filter_range
from data.kraken import KrakenDataSource

__all__ = [
    "HistoricalDataSource",
    "InMemoryDataSource",
    "JsonFileDataSource",
    "KrakenDataSource",
    "filter_range",
]
