#!/usr/bin/env python3
"""
aiodesign demo - building, merging and resolving designs.
"""

import asyncio
import logging

from aiodesign import Design, Injector, ProducerFailureError, bind


class Config:
    def __init__(self, greeting: str, shout: bool):
        self.greeting = greeting
        self.shout = shout


class Greeter:
    def __init__(self, config: Config):
        self.config = config

    def greet(self, name: str) -> str:
        message = f"{self.config.greeting}, {name}!"
        return message.upper() if self.config.shout else message


async def make_config(injector: Injector) -> Config:
    return Config(await injector.greeting, await injector.shout)


async def make_greeter(injector: Injector) -> Greeter:
    return Greeter(await injector.config)


async def make_welcome(injector: Injector) -> str:
    greeter: Greeter = await injector.greeter
    return greeter.greet(await injector.user)


core = bind("config", make_config).bind("greeter", make_greeter)
app = bind("welcome", make_welcome)
defaults = Design.pure({"greeting": "Hello", "shout": False})


async def main() -> None:
    print("=== aiodesign Demo ===\n")

    print("1. Resolving a merged design with requirements")
    print("-" * 50)
    container, finalize = await core.merge(app).merge(defaults).resolve({"user": "alice"})
    print(f"welcome: {container.welcome}")
    print(f"finalization levels: {finalize.levels}")
    await finalize()

    print("\n2. Overriding a binding through merge (right-biased)")
    print("-" * 50)
    loud = defaults.merge(Design.pure({"shout": True}))
    container, finalize = await core.merge(app).merge(loud).resolve({"user": "bob"})
    print(f"welcome: {container.welcome}")
    await finalize()

    print("\n3. Missing requirements are reported at resolution time")
    print("-" * 50)
    try:
        await core.merge(app).merge(defaults).resolve({})
    except ProducerFailureError as e:
        print(f"error: {e}")

    print("\n4. Cycles are reported with their full path")
    print("-" * 50)
    cyclic = bind("a", lambda injector: injector.b).bind("b", lambda injector: injector.a)
    try:
        await cyclic.resolve()
    except ProducerFailureError as e:
        print(f"error: {e}")

    print("\nDemo completed successfully!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
