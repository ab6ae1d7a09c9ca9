import threading
import time

import pytest

from statcounters.callback_values import (
    CallbackCleared,
    CallbackEntry,
    CallbackValuesMap,
    DynamicCounters,
    DynamicStrings,
)


def echo(value):
    return lambda: value


def test_callback_values_map_basic():
    cmap = CallbackValuesMap()
    assert "key1" not in cmap
    assert "key2" not in cmap
    assert cmap.get_value("key1") is None
    assert cmap.get_value("key2", -1) == -1
    assert cmap.get_values() == {}

    cmap.register_callback("key1", echo(123))
    cmap.register_callback("key2", echo(321))
    assert "key1" in cmap
    assert "key2" in cmap
    assert cmap.get_value("key1") == 123
    assert cmap.get_value("key2") == 321
    values = cmap.get_values()
    assert len(values) == 2
    assert values["key1"] == 123
    assert values["key2"] == 321

    assert cmap.unregister_callback("key1") is True
    assert "key1" not in cmap
    assert cmap.get_value("key1", -1) == -1
    assert cmap.get_values() == {"key2": 321}
    assert cmap.unregister_callback("key1") is False


def test_possible_deadlock():
    gate = threading.Lock()
    gate.acquire()
    cmap = CallbackValuesMap()

    def blocking():
        gate.acquire()
        gate.release()
        return 0

    cmap.register_callback("a", blocking)
    result = {}
    bg = threading.Thread(target=lambda: result.update(cmap.get_values()))
    bg.start()
    time.sleep(0.1)
    # registration must not wait for the blocked callback
    cmap.register_callback("b", echo(1))
    assert "b" in cmap
    gate.release()
    bg.join(timeout=10)
    assert not bg.is_alive()
    assert result["a"] == 0


def test_get_callback():
    cmap = CallbackValuesMap()
    assert cmap.get_callback("key1") is None
    assert cmap.get_callback("key2") is None
    cmap.register_callback("key1", echo(123))
    cmap.register_callback("key2", echo(321))
    assert cmap.get_callback("key1").get_value() == 123
    assert cmap.get_callback("key2").get_value() == 321


def test_double_dynamic_counter_deadlock():
    cmap = CallbackValuesMap()
    started = threading.Event()
    cmap.register_callback("a", echo(42))

    def slow():
        started.set()
        time.sleep(0.2)
        return cmap.get_value("a")

    cmap.register_callback("b", slow)
    t1_result = []
    t1 = threading.Thread(target=lambda: t1_result.append(cmap.get_value("b")))
    t1.start()

    done = threading.Event()

    def unregister():
        started.wait(5)
        cmap.unregister_callback("b")
        t1.join()
        done.set()

    t2 = threading.Thread(target=unregister)
    t2.start()
    assert done.wait(10)
    t2.join()
    assert t1_result == [42]
    assert "b" not in cmap


def test_cleared_entry_raises():
    entry = CallbackEntry(echo(5))
    assert entry.get_value() == 5
    entry.clear()
    with pytest.raises(CallbackCleared):
        entry.get_value()


def test_unregister_clears_held_entry():
    cmap = CallbackValuesMap()
    cmap.register_callback("x", echo(7))
    entry = cmap.get_callback("x")
    cmap.unregister_callback("x")
    with pytest.raises(CallbackCleared):
        entry.get_value()


def test_register_replaces_previous():
    cmap = CallbackValuesMap()
    cmap.register_callback("k", echo(1))
    cmap.register_callback("k", echo(2))
    assert cmap.get_value("k") == 2
    assert len(cmap) == 1


def test_clear_and_keys():
    cmap = CallbackValuesMap()
    cmap.register_callback("matchingCounter1", echo(1))
    cmap.register_callback("matchingCounter2", echo(2))
    cmap.register_callback("counter", echo(0))
    assert sorted(cmap.get_keys()) == ["counter", "matchingCounter1", "matchingCounter2"]
    assert cmap.get_regex_keys("matching.*", now=1.0) == [
        "matchingCounter1",
        "matchingCounter2",
    ]
    entry = cmap.get_callback("counter")
    cmap.clear()
    assert len(cmap) == 0
    assert cmap.get_keys() == []
    with pytest.raises(CallbackCleared):
        entry.get_value()


def test_regex_keys_follow_registration_changes():
    cmap = CallbackValuesMap()
    cmap.register_callback("counter", echo(0))
    assert cmap.get_regex_keys("counter.*", now=1.0) == ["counter"]
    cmap.register_callback("counter_add_3", echo(3))
    cmap.unregister_callback("counter")
    cmap.trim_regex_cache(0.5)
    assert cmap.get_regex_keys("counter.*", now=2.0) == ["counter_add_3"]


def test_dynamic_counters_and_strings():
    counters = DynamicCounters()
    counters.register_callback("hits", echo(10))
    assert counters.get_counter("hits") == 10
    assert counters.get_counter("missing") is None
    assert counters.get_counters() == {"hits": 10}

    strings = DynamicStrings()
    strings.register_callback("name", echo("value"))
    assert strings.get_values() == {"name": "value"}


def test_get_values_sorted_by_name():
    cmap = CallbackValuesMap()
    for name in ("b", "c", "a"):
        cmap.register_callback(name, echo(name))
    assert list(cmap.get_values()) == ["a", "b", "c"]