import asyncio
import logging
import sys
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiohttp import web
import config
from database import init_db, close_db, async_session_maker, UserStore, AccountStore, DebtStore, OrderStore
from handlers import start_router, links_router, reactions_router, create_admin_app
from middleware import LoggingMiddleware, AccountsMiddleware
from services.coordinator import OrderCoordinator
from services.debts import DebtService
from services.dedup import InFlightOrders
from services.ingress import WorkerPool
from services.tasks import TaskRegistry
from services.telegram_transport import TelegramTransport
from services.transport import Notifier
from services.users import UserDirectory
from wolt import RetryConfig, WoltAddr, WoltGroup

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


def wolt_group_factory():
    addrs = WoltAddr(base_addr=config.WOLT_BASE_ADDR, api_base_addr=config.WOLT_API_BASE_ADDR)
    retry = RetryConfig(
        max_retries=config.WOLT_HTTP_MAX_RETRY_COUNT,
        min_wait=config.WOLT_HTTP_MIN_RETRY_DURATION,
        max_wait=config.WOLT_HTTP_MAX_RETRY_DURATION,
    )
    return lambda group_id: WoltGroup(addrs, retry, group_id)


async def main():
    logger.info("=" * 70)
    logger.info("🚀 Starting Group Order Bot...")
    logger.info("=" * 70)

    try:
        config.validate()
    except ValueError as e:
        logger.error(f"❌ {e}")
        return

    try:
        logger.info("📊 Initializing database...")
        await init_db()
        logger.info("✅ Database initialized!")
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}")
        return

    logger.info("🤖 Creating bot instance...")
    bot = Bot(
        token=config.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )
    tasks = TaskRegistry()
    link_pool = reaction_pool = runner = None

    try:
        transport = TelegramTransport(bot)
        self_id = await transport.load_self_id()
        notifier = Notifier(transport)
        service_config = config.service_config()

        account_store = AccountStore(async_session_maker)
        directory = UserDirectory(UserStore(async_session_maker), account_store, service_config.user_cache_max_age)
        debts = DebtService(notifier, directory, DebtStore(async_session_maker), tasks, service_config, self_id)
        coordinator = OrderCoordinator(
            notifier,
            directory,
            debts,
            OrderStore(async_session_maker),
            service_config,
            wolt_group_factory(),
            in_flight=InFlightOrders(),
        )

        logger.info("👷 Starting workers...")
        link_pool = WorkerPool("links", coordinator.handle_link, config.LINK_WORKERS,
                               config.WORKER_QUEUE_SIZE, config.ENQUEUE_TIMEOUT)
        reaction_pool = WorkerPool("reactions", debts.handle_reaction, config.REACTION_WORKERS,
                                   config.WORKER_QUEUE_SIZE, config.ENQUEUE_TIMEOUT)
        link_pool.start()
        reaction_pool.start()

        logger.info("⚙️ Creating dispatcher...")
        dp = Dispatcher(link_pool=link_pool, reaction_pool=reaction_pool, transport=transport)

        logger.info("🔧 Setting up middleware...")
        dp.message.middleware(LoggingMiddleware())
        dp.message_reaction.middleware(LoggingMiddleware())
        dp.message.outer_middleware(AccountsMiddleware(account_store, transport))
        dp.message_reaction.outer_middleware(AccountsMiddleware(account_store, transport))

        logger.info("📝 Registering handlers...")
        dp.include_router(start_router)
        dp.include_router(links_router)
        dp.include_router(reactions_router)

        logger.info(f"🛠 Admin commands on port {config.ADMIN_HTTP_PORT}...")
        runner = web.AppRunner(create_admin_app(directory, transport, config.ADMIN_USER_IDS, config.DEFAULT_USER_TIMEZONE))
        await runner.setup()
        await web.TCPSite(runner, port=config.ADMIN_HTTP_PORT).start()

        logger.info("=" * 70)
        logger.info("✅ Bot started successfully!")
        logger.info("👂 Waiting for messages...")
        logger.info("⌨️  Press Ctrl+C to stop")
        logger.info("=" * 70)

        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())

    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
    finally:
        logger.info("🔌 Closing bot...")
        for pool in (link_pool, reaction_pool):
            if pool:
                await pool.stop()
        await tasks.shutdown()
        if runner:
            await runner.cleanup()
        await bot.session.close()
        await close_db()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("\n" + "=" * 70)
        logger.info("🛑 Bot stopped by user")
        logger.info("=" * 70)


if __name__ == "__main__":
    run()
