"""
test_login_service.py - Login flow, verification pool and maintenance tests
"""

import threading

import pytest

from s3explorer.core.auth.login import LoginService
from s3explorer.core.errors import AuthError, RateLimitError, ServiceBusyError, ValidationError
from s3explorer.core.maintenance import MaintenanceWorker

PASSWORD = "Str0ngP@ssword!"
IP = "198.51.100.20"


class BlockingVerifier:
    """Holds every verification until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def verify(self, digest, candidate):
        self.entered.set()
        self.release.wait(timeout=10)
        return candidate == PASSWORD


@pytest.fixture
def service(verifier, rate_limiter, sessions):
    login_service = LoginService(verifier, verifier.hash(PASSWORD), rate_limiter, sessions, workers=2, queue_limit=4)
    yield login_service
    login_service.shutdown()


class TestLoginFlow:
    def test_success_creates_session(self, service, sessions):
        token, session = service.login(IP, PASSWORD)
        assert sessions.lookup(token) is not None
        assert not session.remember_me

    def test_remember_me(self, service):
        _, session = service.login(IP, PASSWORD, remember_me=True)
        assert session.remember_me

    def test_wrong_password_counts_failure(self, service, rate_limiter):
        with pytest.raises(AuthError):
            service.login(IP, "Wr0ngP@ssword!")
        assert rate_limiter.get_record(IP).attempts == 1

    def test_missing_password_counts_failure(self, service, rate_limiter):
        with pytest.raises(ValidationError):
            service.login(IP, None)
        assert rate_limiter.get_record(IP).attempts == 1

    def test_blocked_ip_is_not_verified(self, service, rate_limiter):
        for _ in range(10):
            rate_limiter.record_failure(IP)
        with pytest.raises(RateLimitError) as excinfo:
            service.login(IP, PASSWORD)
        assert excinfo.value.retry_after == 1800


class TestVerificationPool:
    def test_overflow_is_busy(self, rate_limiter, sessions):
        verifier = BlockingVerifier()
        service = LoginService(verifier, "digest", rate_limiter, sessions, workers=1, queue_limit=1)
        results = []

        worker = threading.Thread(target=lambda: results.append(service.login("192.0.2.1", PASSWORD)))
        worker.start()
        try:
            assert verifier.entered.wait(timeout=10)
            with pytest.raises(ServiceBusyError):
                service.login("192.0.2.2", PASSWORD)
        finally:
            verifier.release.set()
            worker.join(timeout=10)
            service.shutdown()

        assert len(results) == 1

    def test_slot_released_after_verification(self, rate_limiter, sessions):
        verifier = BlockingVerifier()
        verifier.release.set()
        service = LoginService(verifier, "digest", rate_limiter, sessions, workers=1, queue_limit=1)
        try:
            service.login("192.0.2.1", PASSWORD)
            service.login("192.0.2.1", PASSWORD)
        finally:
            service.shutdown()


class TestMaintenance:
    def test_run_once(self, sessions, rate_limiter, clock):
        sessions.create()
        rate_limiter.record_failure(IP)
        clock.advance(2 * 24 * 60 * 60)

        worker = MaintenanceWorker(sessions, rate_limiter, interval=3600)
        assert worker.run_once() == (1, 1)
        assert worker.run_once() == (0, 0)

    def test_start_stop(self, sessions, rate_limiter):
        worker = MaintenanceWorker(sessions, rate_limiter, interval=3600)
        worker.start()
        assert worker.running
        worker.stop()
        assert not worker.running
