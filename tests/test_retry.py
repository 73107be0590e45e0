from ref_store.retry import RetryPolicy


def test_no_delay_by_default():
    policy = RetryPolicy()
    assert policy.max_attempts == 10
    assert policy.delay(0) == 0.0
    assert policy.delay(5) == 0.0


def test_exponential_delay_is_capped():
    policy = RetryPolicy(initial_delay_ms=100, max_delay_ms=500, jitter=False)
    assert policy.delay(0) == 0.1
    assert policy.delay(1) == 0.2
    assert policy.delay(2) == 0.4
    assert policy.delay(3) == 0.5


def test_jitter_stays_within_a_quarter():
    policy = RetryPolicy(initial_delay_ms=100)
    for _ in range(50):
        assert 0.075 <= policy.delay(0) <= 0.125


def test_pause_sleeps_for_delay(monkeypatch):
    slept = []
    monkeypatch.setattr("ref_store.retry.time.sleep", slept.append)

    RetryPolicy().pause(0)
    RetryPolicy(initial_delay_ms=100, jitter=False).pause(1)

    assert slept == [0.2]
