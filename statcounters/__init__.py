"""Callback counter maps, regex key lookup, LRU maps, timeseries export and quantile stat maps."""

__version__ = "0.1.0"

__all__ = [
    "callback_values",
    "limits",
    "lock_traits",
    "lru",
    "quantile_stat_map",
    "regex_cache",
    "timeseries_exporter",
]