"""In-memory stand-ins for the service's external collaborators."""


class FakeRedis:
    """Implements the handful of redis.Redis calls the product cache makes."""

    def __init__(self):
        self.store: dict[str, bytes] = {}
        self.ttls: dict[str, int] = {}
        self.calls: list[tuple] = []
        self.closed = False

    def get(self, key):
        self.calls.append(("get", key))
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.calls.append(("setex", key, ttl))
        self.store[key] = value if isinstance(value, bytes) else str(value).encode()
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        self.calls.append(("delete",) + keys)
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def ping(self):
        return True

    def close(self):
        self.closed = True
