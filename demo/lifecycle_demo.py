import asyncio
import logging

from aiodesign import Design, Injector


class DBConnection:
    def __init__(self, connection_string: str):
        self.connection_string = connection_string
        self.connected = False

    async def connect(self) -> None:
        print(f"[DB] Connecting to {self.connection_string}")
        await asyncio.sleep(0.01)
        self.connected = True

    async def aclose(self) -> None:
        print(f"[DB] Disconnecting from {self.connection_string}")
        self.connected = False

    def query(self, sql: str) -> str:
        assert self.connected, "Not connected to database"
        return f"Result: {sql}"


class MessageQueue:
    def __init__(self) -> None:
        self.connected = False

    async def connect(self) -> None:
        print("[MQ] Connecting to message queue")
        self.connected = True

    async def disconnect(self) -> None:
        print("[MQ] Disconnecting from message queue")
        self.connected = False

    def send(self, message: str) -> None:
        assert self.connected, "Not connected to message queue"
        print(f"[MQ] Sending: {message}")


class UserService:
    def __init__(self, db: DBConnection, mq: MessageQueue, logger: logging.Logger):
        self.db = db
        self.mq = mq
        self.logger = logger

    def create_user(self, name: str) -> str:
        self.logger.info(f"Creating user: {name}")
        result = self.db.query(f"INSERT INTO users (name) VALUES ('{name}')")
        self.mq.send(f"User created: {name}")
        return result


async def make_db(injector: Injector) -> DBConnection:
    conn = DBConnection(await injector.connection_string)
    await conn.connect()
    return conn


async def make_mq(_injector: Injector) -> MessageQueue:
    mq = MessageQueue()
    await mq.connect()
    return mq


async def release_mq(mq: MessageQueue) -> None:
    await mq.disconnect()


async def make_user_service(injector: Injector) -> UserService:
    db, mq = await asyncio.gather(injector.db, injector.mq)
    return UserService(db, mq, logging.getLogger("demo.user_service"))


async def release_user_service(_service: UserService) -> None:
    print("[APP] Stopping user service")


design = (
    Design.empty()
    .bind_resource("db", make_db)
    .bind("mq", make_mq, release_mq)
    .bind("user_service", make_user_service, release_user_service)
)


async def main() -> None:
    print("=== Lifecycle Demo ===\n")
    print("1. Resolving design (resources will be acquired)...")
    print("-" * 50)

    async def app(container) -> str:
        print("\n[APP] Inside application logic")
        service: UserService = container.user_service
        result1 = service.create_user("alice")
        result2 = service.create_user("bob")
        print("[APP] Application logic completed\n")
        return f"{result1}, {result2}"

    # user_service is finalized first, then db and mq together
    result = await design.use({"connection_string": "postgresql://localhost:5432/mydb"})(app)

    print("\n2. Resources have been released in dependency order!")
    print("-" * 50)
    print(f"\nFinal result: {result}")
    print("\nDemo completed successfully!")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
