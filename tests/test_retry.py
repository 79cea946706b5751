from utils.retry import with_retry


def test_exhausted_retries_return_none_with_exponential_waits():
    sleeps = []
    attempts = []

    def always_fails():
        attempts.append(1)
        raise RuntimeError("boom")

    result = with_retry(always_fails, "test", max_retries=3, base_delay=1.0, sleep=sleeps.append)

    assert result is None
    assert len(attempts) == 3
    assert sleeps == [1.0, 2.0]


def test_success_after_failure_returns_result():
    sleeps = []
    outcomes = iter([RuntimeError("first"), 42])

    def flaky():
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    assert with_retry(flaky, "test", max_retries=3, base_delay=1.0, sleep=sleeps.append) == 42
    assert sleeps == [1.0]


def test_zero_is_a_result_not_a_failure():
    sleeps = []
    assert with_retry(lambda: 0, "test", sleep=sleeps.append) == 0
    assert sleeps == []


def test_custom_schedule():
    sleeps = []

    def fails():
        raise ValueError("bad")

    with_retry(fails, "test", max_retries=4, base_delay=0.5, sleep=sleeps.append)
    assert sleeps == [0.5, 1.0, 2.0]
