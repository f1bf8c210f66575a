"""Backend reachability checks and the offline -> online transition."""
from conftest import FakeHttp
from edventure.connectivity import ConnectivityMonitor


def test_checks_rest_endpoint():
    http = FakeHttp()
    monitor = ConnectivityMonitor(url="https://abc.supabase.co/", timeout=3, session=http)
    assert monitor.is_online()
    assert http.requests == [("https://abc.supabase.co/rest/v1/", 3)]


def test_transport_error_means_offline():
    monitor = ConnectivityMonitor(url="https://abc.supabase.co", session=FakeHttp(up=False))
    assert not monitor.is_online()


def test_no_backend_configured_means_offline():
    http = FakeHttp()
    monitor = ConnectivityMonitor(url="", session=http)
    assert not monitor.is_online()
    assert http.requests == []


def test_poll_fires_callbacks_when_coming_back():
    http = FakeHttp(up=True)
    monitor = ConnectivityMonitor(url="https://abc.supabase.co", session=http)
    fired = []
    monitor.on_online(lambda: fired.append("sync"))

    assert monitor.poll()
    assert fired == []

    http.up = False
    assert not monitor.poll()
    http.up = True
    assert monitor.poll()
    assert monitor.poll()
    assert fired == ["sync"]


def test_failing_callback_does_not_break_others():
    http = FakeHttp(up=False)
    monitor = ConnectivityMonitor(url="https://abc.supabase.co", session=http)
    fired = []

    def broken():
        raise RuntimeError("sync exploded")

    monitor.on_online(broken)
    monitor.on_online(lambda: fired.append("ok"))
    monitor.poll()
    http.up = True
    monitor.poll()
    assert fired == ["ok"]


def test_offline_answer_is_remembered_for_the_next_poll():
    http = FakeHttp(up=False)
    monitor = ConnectivityMonitor(url="https://abc.supabase.co", session=http)
    fired = []
    monitor.on_online(lambda: fired.append("sync"))

    assert not monitor.is_online()
    http.up = True
    assert monitor.poll()
    assert fired == ["sync"]
