from __future__ import annotations

import asyncio
import os
import signal
import sys

from dotenv import load_dotenv

from wakelink.config.settings import CONFIG_ERRORS, Credentials, MissingCredentialsError, load_credentials, load_settings
from wakelink.utils.logging import configure_logging


async def _run(credentials: Credentials) -> int:
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    try:
        settings = load_settings()
    except CONFIG_ERRORS as e:
        print(f"ERROR: invalid configuration: {e}")
        return 1

    # audio stack is imported only once the configuration is valid
    from wakelink.assistant import STARTUP_ERRORS, Assistant

    try:
        assistant = Assistant(settings, credentials)
    except STARTUP_ERRORS as e:
        print(f"ERROR: could not initialize wake word engine or audio: {e}")
        return 1

    assistant.warm_up()
    try:
        assistant.start_capture()
    except OSError as e:
        print(f"ERROR: could not open microphone: {e}")
        await assistant.stop()
        return 1

    try:
        await assistant.run()
    finally:
        await assistant.stop()
    return 0


def _request_stop(stop: asyncio.Future[None]) -> None:
    if not stop.done():
        stop.set_result(None)


def main() -> None:
    load_dotenv()

    try:
        credentials = load_credentials()
    except MissingCredentialsError as e:
        print(f"ERROR: {e}")
        print("Please create a .env file with:")
        print("  OPENAI_API_KEY=your_api_key_here")
        print("  PORCUPINE_ACCESS_KEY=your_access_key_here")
        sys.exit(1)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    stop: asyncio.Future[None] = loop.create_future()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_stop, stop)

    async def runner() -> int:
        task = asyncio.create_task(_run(credentials))
        done, _ = await asyncio.wait({task, stop}, return_when=asyncio.FIRST_COMPLETED)
        if task in done:
            return task.result()
        print("Shutting down...")
        task.cancel()
        try:
            return await task
        except asyncio.CancelledError:
            return 0

    try:
        rc = loop.run_until_complete(runner())
    finally:
        loop.close()
    sys.exit(rc)


if __name__ == "__main__":
    main()
