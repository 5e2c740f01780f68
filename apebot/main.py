"""Main entry point for apebot.

Initializes logging in two phases (defaults then config-driven),
builds the Bot with core commands and plugins, creates the configured
provider, and runs it until the input ends or SIGTERM/SIGINT arrives.

Key functions:
    build_bot: Create a Bot wired with core commands, the optional
        unknown-command reply, and plugin routes.
    main: Async entry point.
    run: Synchronous wrapper that calls asyncio.run(main()).
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional, Tuple

import structlog

from .bot import Bot
from .commands import BotContext, CoreCommandHandler, make_unknown_command_handler, register_commands
from .logging_config import setup_logging

__version__ = "0.3.0"


def build_bot(config, plugin_loader=None) -> Tuple[Bot, BotContext]:
    """Create a Bot with everything the config asks for registered."""
    bot = Bot()
    ctx = BotContext(bot=bot, config=config, plugin_loader=plugin_loader)
    register_commands(bot, CoreCommandHandler(ctx))

    template = config.unknown_command_reply
    if template:
        bot.set_default(make_unknown_command_handler(template))

    if plugin_loader is not None:
        plugin_loader.register(bot)
    return bot, ctx


async def main(config_dir: Optional[Path] = None):
    """Main async entry point."""
    # Phase 1: defaults, cache_logger_on_first_use=False
    setup_logging()
    logger = structlog.get_logger("apebot")

    logger.info("apebot_starting", version=__version__)

    # Import here to ensure logging is configured first
    from .config import Config, get_config
    from .plugin_loader import PluginLoader
    from .providers import create_provider

    config = Config(config_dir) if config_dir is not None else get_config()
    config.validate()

    # Phase 2: reconfigure with real config, cache_logger_on_first_use=True
    setup_logging(config)

    plugin_loader = PluginLoader(
        plugins_dir=config.plugins_dir,
        settings=config.settings,
        data_dir=Path(config.config_dir).parent / "data" / "plugins",
        bot_name=config.bot_name,
        allowlist=config.plugin_allowlist,
    )
    plugin_loader.discover_and_load()

    bot, _ = build_bot(config, plugin_loader)
    provider = create_provider(config, bot)

    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def handle_shutdown(sig):
        logger.info("shutdown_signal_received", signal=sig.name)
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, handle_shutdown, sig)
        except NotImplementedError:
            # Windows: add_signal_handler not supported.
            if sig == signal.SIGINT:
                signal.signal(
                    signal.SIGINT,
                    lambda s, f: handle_shutdown(signal.SIGINT),
                )

    await plugin_loader.start_all()
    logger.info(
        "bot_started",
        provider=provider.name,
        name=config.bot_name,
        commands=sorted(bot.command_names),
        routes=len(bot.routes),
    )

    provider_task = asyncio.create_task(provider.run())
    shutdown_task = asyncio.create_task(shutdown_event.wait())
    try:
        done, _ = await asyncio.wait(
            {provider_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if provider_task in done:
            # Re-raise provider failures such as rejected credentials
            provider_task.result()
    except Exception as e:
        logger.error("bot_error", error=str(e))
        raise
    finally:
        for task in (provider_task, shutdown_task):
            task.cancel()
        await asyncio.gather(provider_task, shutdown_task, return_exceptions=True)
        await provider.stop()
        await plugin_loader.stop_all()
        logger.info("apebot_stopped")


def run():
    """Synchronous entry point for the ``apebot`` console script."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except SystemExit as e:
        sys.exit(e.code)


if __name__ == "__main__":
    run()
