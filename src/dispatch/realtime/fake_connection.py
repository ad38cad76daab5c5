"""Fake realtime connection that records pushed events for testing."""

from dispatch.realtime.connection import Connection


class FakeConnection(Connection):
    """Connection that keeps every pushed event in memory for test assertions."""

    def __init__(self, connection_id: str | None = None):
        super().__init__(connection_id)
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Connection closed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Connection closed"):
        """Configure the fake connection behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    async def send(self, event: str, data) -> None:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        self.sent.append({"event": event, "data": data})

    def events(self) -> list[str]:
        return [message["event"] for message in self.sent]

    def reset(self):
        """Clear recorded events (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Connection closed"
