import pytest

from rowgraph.persistence import TransactionError, TransactionScope


class FakeDriver:
    def __init__(self):
        self.calls = []
        self.in_transaction = False

    def begin_transaction(self):
        self.calls.append("begin")
        self.in_transaction = True

    def commit(self):
        self.calls.append("commit")
        self.in_transaction = False

    def rollback(self):
        self.calls.append("rollback")
        self.in_transaction = False


def test_begin_and_commit():
    driver = FakeDriver()
    scope = TransactionScope(driver)
    scope.begin()
    assert scope.active
    scope.commit()
    assert not scope.active
    assert driver.calls == ["begin", "commit"]


def test_nested_begin_is_rejected():
    driver = FakeDriver()
    scope = TransactionScope(driver)
    scope.begin()
    with pytest.raises(TransactionError):
        scope.begin()
    with pytest.raises(TransactionError):
        TransactionScope(driver).begin()


def test_commit_and_rollback_need_active_transaction():
    scope = TransactionScope(FakeDriver())
    with pytest.raises(TransactionError):
        scope.commit()
    with pytest.raises(TransactionError):
        scope.rollback()


def test_context_manager_rolls_back_on_error():
    driver = FakeDriver()
    with pytest.raises(KeyError):
        with TransactionScope(driver).transaction():
            raise KeyError("boom")
    assert driver.calls == ["begin", "rollback"]

    with TransactionScope(driver).transaction() as scope:
        assert scope.active
    assert driver.calls[-2:] == ["begin", "commit"]
