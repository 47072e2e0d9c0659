import logging
import signal
import threading
import time

from aiskit.shutdown import (
    PRIORITY_FIRST,
    PRIORITY_LAST,
    PRIORITY_NORMAL,
    Config,
    HookContext,
    Manager,
    default_config,
)


def test_default_config_values():
    cfg = default_config()
    assert cfg.timeout == 30.0
    assert cfg.hook_timeout == 30.0


def test_shutdown_hook_timeout():
    m = Manager(Config(timeout=1.0, hook_timeout=0.05))
    fast_called = threading.Event()

    def slow(ctx):
        ctx.wait()
        raise TimeoutError("deadline exceeded")

    def fast(ctx):
        fast_called.set()

    m.register_hook_with_priority("slow", slow, PRIORITY_NORMAL)
    m.register_hook_with_priority("fast", fast, PRIORITY_NORMAL)

    start = time.monotonic()
    m.shutdown()
    elapsed = time.monotonic() - start

    assert m.is_shutdown() is True
    assert m.wait_for_shutdown(0) is True
    assert fast_called.is_set()
    assert elapsed < 0.5


def test_hooks_run_in_priority_order():
    m = Manager(Config(timeout=2.0, hook_timeout=1.0))
    order = []
    m.register_hook_with_priority("last", lambda ctx: order.append("last"), PRIORITY_LAST)
    m.register_hook_with_priority("first", lambda ctx: order.append("first"), PRIORITY_FIRST)
    m.register_hook("normal", lambda ctx: order.append("normal"))
    m.shutdown()
    assert order == ["first", "normal", "last"]


def test_same_priority_hooks_run_concurrently():
    m = Manager(Config(timeout=2.0, hook_timeout=2.0))
    barrier = threading.Barrier(2, timeout=1.0)
    passed = []

    def hook(ctx):
        barrier.wait()
        passed.append(True)

    m.register_hook("a", hook)
    m.register_hook("b", hook)
    m.shutdown()
    assert m.is_shutdown() is True
    assert passed == [True, True]


def test_shutdown_runs_only_once():
    m = Manager(Config(timeout=1.0, hook_timeout=1.0))
    calls = []
    m.register_hook("count", lambda ctx: calls.append(1))
    assert m.is_shutdown() is False
    m.shutdown()
    m.shutdown()
    assert calls == [1]
    assert m.is_shutdown() is True
    assert m.wait_for_shutdown(0.1) is True


def test_wait_for_shutdown_times_out_before_shutdown():
    m = Manager()
    assert m.wait_for_shutdown(0.05) is False


def test_global_timeout_skips_later_groups():
    m = Manager(Config(timeout=0.1, hook_timeout=1.0))
    later = []
    m.register_hook_with_priority("slow", lambda ctx: time.sleep(0.4), PRIORITY_FIRST)
    m.register_hook_with_priority("later", lambda ctx: later.append(1), PRIORITY_LAST)

    start = time.monotonic()
    m.shutdown()
    elapsed = time.monotonic() - start

    assert later == []
    assert elapsed < 0.35


def test_failed_hook_is_reported(caplog):
    logger = logging.getLogger("test.shutdown")
    m = Manager(Config(timeout=1.0, hook_timeout=1.0), logger)

    def broken(ctx):
        raise RuntimeError("boom")

    m.register_hook("broken", broken)
    with caplog.at_level(logging.INFO, logger="test.shutdown"):
        m.shutdown()
    assert "Shutdown hook failed" in caplog.text
    assert "boom" in caplog.text
    assert "succeeded=0 total=1" in caplog.text


def test_hook_context_deadline():
    ctx = HookContext(time.monotonic() + 0.05)
    assert ctx.done() is False
    assert ctx.remaining() > 0
    assert ctx.wait() is True
    assert ctx.remaining() == 0.0


def test_hook_context_wait_with_short_timeout():
    ctx = HookContext(time.monotonic() + 5.0)
    assert ctx.wait(0.01) is False


def test_wait_shuts_down_on_signal():
    m = Manager(Config(timeout=1.0, hook_timeout=1.0))
    called = []
    m.register_hook("mark", lambda ctx: called.append(1))
    timer = threading.Timer(0.2, signal.raise_signal, args=(signal.SIGINT,))
    timer.start()
    m.wait()
    timer.join()
    assert m.is_shutdown() is True
    assert called == [1]