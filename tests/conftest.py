import pytest

from gateway import ModelId, ProviderError


class FakeGateway:
    """Returns queued replies in order; an Exception in the queue is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    async def complete(self, prompt: str, model: ModelId) -> str:
        self.calls.append((prompt, ModelId(model)))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def provider_down():
    return ProviderError("Provider returned HTTP 401: invalid api key")
