import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class PaymentLocks:
    """
    Per-payment-reference asyncio locks.

    Serializes check-then-apply for one reference inside this process so
    concurrent notifications for it are applied in arrival order.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, payment_id: str):
        lock = self._locks.setdefault(payment_id, asyncio.Lock())
        self._waiters[payment_id] = self._waiters.get(payment_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[payment_id] -= 1
            if self._waiters[payment_id] == 0:
                del self._waiters[payment_id]
                del self._locks[payment_id]

    def __len__(self) -> int:
        return len(self._locks)


payment_locks = PaymentLocks()
