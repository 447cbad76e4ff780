"""Entry point for DevWatch: python -m devwatch"""

import asyncio
import logging
import os
import uuid

from langchain_core.messages import HumanMessage

from devwatch.agent import create_agent
from devwatch.config import Settings
from devwatch.github_api import GitHubClient
from devwatch.handlers import MessageHandler
from devwatch.models import WatchedRepository
from devwatch.notifications import ConsoleNotifier, LogNotifier
from devwatch.scheduler import Scheduler
from devwatch.storage import SqliteKeyValueStore, Storage
from devwatch.sync import SyncContext
from devwatch.tools import build_tools

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
# Quiet noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("langchain").setLevel(logging.WARNING)

logger = logging.getLogger("devwatch")


async def seed_from_environment(storage: Storage) -> None:
    """Store GITHUB_TOKEN and DEVWATCH_REPOS when they are provided."""
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        await storage.set_credential(token)

    repos = os.environ.get("DEVWATCH_REPOS")
    if repos:
        watched = []
        for entry in repos.split(","):
            if not entry.strip():
                continue
            try:
                watched.append(WatchedRepository.from_raw(entry))
            except ValueError as e:
                logger.warning("Ignoring DEVWATCH_REPOS entry: %s", e)
        await storage.set_watched_repositories(watched)


async def chat_loop(agent, config: dict) -> None:
    """Run the interactive chat loop."""
    print("DevWatch ready! Ask about your repositories (Ctrl+C to quit).\n")

    while True:
        try:
            user_input = await asyncio.to_thread(input, "You: ")
        except EOFError:
            break

        if not user_input.strip():
            continue

        try:
            response = await asyncio.to_thread(
                agent.invoke,
                {"messages": [HumanMessage(content=user_input)]},
                config,
            )
            last_message = response["messages"][-1]
            print(f"\nDevWatch: {last_message.content}\n")
        except Exception as e:
            error_msg = str(e)
            if "tool_use" in error_msg and "tool_result" in error_msg:
                # Corrupted checkpoint, start a fresh thread
                config["configurable"]["thread_id"] = uuid.uuid4().hex
                print("\nDevWatch: Sorry, I lost track of our conversation. Please try again.\n")
            else:
                print(f"\nDevWatch: Sorry, I encountered an error: {error_msg}\n")


async def main() -> None:
    """Initialize and run DevWatch."""
    settings = Settings.from_environment()

    kv = SqliteKeyValueStore(settings.db_path)
    kv.connect()
    storage = Storage(kv)
    await seed_from_environment(storage)

    github = GitHubClient(settings.api_base, timeout=settings.request_timeout)
    notifier = LogNotifier() if settings.headless else ConsoleNotifier()
    scheduler = Scheduler(SyncContext(storage, github, notifier, settings))

    scheduler_task = asyncio.create_task(scheduler.run_forever())

    try:
        if settings.headless:
            await scheduler_task
        else:
            loop = asyncio.get_running_loop()
            handler = MessageHandler(scheduler)
            tools = build_tools(
                handler,
                lambda coro: asyncio.run_coroutine_threadsafe(coro, loop).result(),
            )
            agent = create_agent(
                tools,
                checkpoint_db_path=settings.checkpoint_path,
                model_name=settings.agent_model,
            )
            config = {"configurable": {"thread_id": uuid.uuid4().hex}}
            await chat_loop(agent, config)
    except KeyboardInterrupt:
        print("\nGoodbye!")
    finally:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass
        await github.close()
        kv.close()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
