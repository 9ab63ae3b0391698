import asyncio

from campaign_dispatcher.services.locks import KeyedLocks


def test_same_key_is_serialised() -> None:
    locks = KeyedLocks()
    order: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("A1"):
            order.append(f"{name}:start")
            await asyncio.sleep(0.01)
            order.append(f"{name}:end")

    async def scenario() -> None:
        await asyncio.gather(worker("first"), worker("second"))

    asyncio.run(scenario())

    assert order == ["first:start", "first:end", "second:start", "second:end"]
    assert len(locks) == 0


def test_different_keys_do_not_block() -> None:
    locks = KeyedLocks()
    order: list[str] = []

    async def worker(key: str) -> None:
        async with locks.hold(key):
            order.append(f"{key}:start")
            await asyncio.sleep(0.01)
            order.append(f"{key}:end")

    async def scenario() -> None:
        await asyncio.gather(worker("A1"), worker("B2"))

    asyncio.run(scenario())

    assert order[:2] == ["A1:start", "B2:start"]
    assert len(locks) == 0
