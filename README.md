# statcounters

Building blocks for exporting counters and statistics from a running
service. The package has no dependencies outside the standard library.

## Modules

- `statcounters.callback_values`: `CallbackValuesMap`, `DynamicCounters`
  and `DynamicStrings`, named values computed on demand by registered
  callbacks. Callbacks run without the map's lock held, so a callback may
  itself query or change the map. `get_value` returns a default when a name
  is unknown or its callback was unregistered in the meantime;
  `get_callback` returns the `CallbackEntry` itself, whose `get_value`
  raises `CallbackCleared` once it has been unregistered.
- `statcounters.regex_cache`: `RegexMatchCache` and `CachedKeyMap`. A
  regex lookup (a full match against each key) is cached and kept up to
  date as keys are added and removed; `trim_stale` / `purge` drop cached
  regexes not queried since a given time. An invalid expression raises
  `re.error`.
- `statcounters.lru`: `SimpleLRUMap`, a bounded least-recently-used map
  counting `hits` and `misses`. A capacity of 0 stores nothing: `set` and
  `get_or_create` then raise `OverflowError`, while `try_set` returns
  `SetResult.FAILED` and `try_get_or_create` returns None. `peek` and
  `touch` raise `KeyError` for a missing key; evicted `(key, value)` pairs
  are handed to an optional eviction callback.
- `statcounters.limits`: `read_limit_header` reads a non-negative 32-bit
  integer limit from a header mapping (anything else gives None);
  `add_counters_available` records the number of available counters under
  the `fb303_counters_available` header.
- `statcounters.lock_traits`: counter and count/sum timeseries cells in a
  single-threaded flavour (`TLStatsNoLocking`: `NoLockingCounter`,
  `NoLockingTimeSeries`) and a thread-safe flavour (`TLStatsThreadSafe`:
  `ThreadSafeCounter`, `ThreadSafeTimeSeries`). The timeseries cells clamp
  count and sum to the signed 64-bit range with `clamped_add`.
  `DebugCheckedLock` raises `RuntimeError` when acquired while already held.
- `statcounters.timeseries_exporter`: `export_stat` and `unexport_stat`
  publish every level of a multi-level timeseries, wrapped in a
  `SynchronizedStat`, as counters in a `DynamicCounters`, named like
  `requests.rate.600` (or `requests.rate` for the all-time level).
  `ExportType` lists the aggregates: `SUM`, `COUNT`, `AVG`, `RATE`,
  `PERCENT`.
- `statcounters.quantile_stat_map`: `QuantileStatMap` turns registered
  quantile stats into counters named like `latency.p99.60`, `latency.p99.9`
  or `latency.avg`, using `make_key` and `extract_value` (values clamped to
  the signed 64-bit range). Its clock is injectable and defaults to
  `time.monotonic`.

## Example

```python
from statcounters.callback_values import DynamicCounters

counters = DynamicCounters()
counters.register_callback("queue.depth", lambda: 17)
counters.register_callback("workers.busy", lambda: 3)

print(counters.get_counter("queue.depth"))    # 17
print(counters.get_counters())                # {'queue.depth': 17, 'workers.busy': 3}
print(counters.get_regex_keys(r"queue\..*"))  # ['queue.depth']

counters.unregister_callback("workers.busy")
print("workers.busy" in counters)             # False
```

```python
from statcounters.lru import SimpleLRUMap

cache = SimpleLRUMap(2)
cache.set("a", 1)
cache.set("b", 2)
cache.set("c", 3)                              # evicts "a"
print("a" in cache, len(cache), list(cache))  # False 2 ['c', 'b']
```

## What it does not do

- It does not serve counters over the network: there is no RPC or HTTP
  endpoint and no command-line program. Reading values is up to the
  application.
- It contains no timeseries or quantile estimator of its own.
  `timeseries_exporter` works with any object providing `num_levels`,
  `level_duration`, `update`, `sum`, `count`, `avg` and `rate`;
  `QuantileStatMap` works with any object providing `get_estimates`,
  `creation_time`, `get_sliding_window_lengths`, `flush` and
  `get_snapshot`.
- There is no process-wide registry of stats and no persistent storage.

## Running the tests

```
pip install -e ".[test]"
pytest
```