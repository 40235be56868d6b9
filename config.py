import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

# Bot Configuration
BOT_TOKEN = os.getenv('BOT_TOKEN')
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite+aiosqlite:///group_orders.db')

# Admin slash-command server
ADMIN_USER_IDS = {uid.strip() for uid in os.getenv('ADMIN_USER_IDS', '').split(',') if uid.strip()}
ADMIN_HTTP_PORT = int(os.getenv('ADMIN_HTTP_PORT', '8080'))
# Timezone given to users added with /add-user, drives their quiet hours
DEFAULT_USER_TIMEZONE = os.getenv('DEFAULT_USER_TIMEZONE', '')

# Wolt API
WOLT_BASE_ADDR = os.getenv('WOLT_BASE_ADDR', 'https://wolt.com')
WOLT_API_BASE_ADDR = os.getenv('WOLT_API_BASE_ADDR', 'https://restaurant-api.wolt.com')
WOLT_HTTP_MAX_RETRY_COUNT = int(os.getenv('WOLT_HTTP_MAX_RETRY_COUNT', '5'))
WOLT_HTTP_MIN_RETRY_DURATION = float(os.getenv('WOLT_HTTP_MIN_RETRY_DURATION', '1'))
WOLT_HTTP_MAX_RETRY_DURATION = float(os.getenv('WOLT_HTTP_MAX_RETRY_DURATION', '30'))

# Order lifecycle (all durations in seconds)
ORDER_READY_TIMEOUT = float(os.getenv('ORDER_READY_TIMEOUT', 40 * 60))
DELIVERY_TIMEOUT = float(os.getenv('DELIVERY_TIMEOUT', 2 * 60 * 60))
WAIT_BETWEEN_STATUS_CHECK = float(os.getenv('WAIT_BETWEEN_STATUS_CHECK', 20))
TIME_TILL_GET_READY_MESSAGE = float(os.getenv('TIME_TILL_GET_READY_MESSAGE', 2 * 60))
DONT_JOIN_AFTER = os.getenv('DONT_JOIN_AFTER', '')  # HH:MM
DONT_JOIN_AFTER_TZ = os.getenv('DONT_JOIN_AFTER_TZ', '')

# Debts
DEBT_REMINDER_INTERVAL = float(os.getenv('DEBT_REMINDER_INTERVAL', 3 * 60 * 60))
DEBT_MAXIMUM_DURATION = float(os.getenv('DEBT_MAXIMUM_DURATION', 24 * 60 * 60))
NO_MESSAGES_BEFORE_HOUR = int(os.getenv('NO_MESSAGES_BEFORE_HOUR', 9))
NO_MESSAGES_AFTER_HOUR = int(os.getenv('NO_MESSAGES_AFTER_HOUR', 21))

# Reactions and emojis (Telegram only accepts its own reaction set)
MARK_AS_PAID_REACTION = os.getenv('MARK_AS_PAID_REACTION', '🤝')
HOST_REMOVE_DEBTS_REACTION = os.getenv('HOST_REMOVE_DEBTS_REACTION', '👎')
ORDER_DESTINATION_EMOJI = os.getenv('ORDER_DESTINATION_EMOJI', '🏢')

# User lookup cache
USER_CACHE_MAX_AGE = float(os.getenv('USER_CACHE_MAX_AGE', 6 * 24 * 60 * 60))

# Ingress workers
LINK_WORKERS = int(os.getenv('LINK_WORKERS', 10))
REACTION_WORKERS = int(os.getenv('REACTION_WORKERS', 5))
WORKER_QUEUE_SIZE = int(os.getenv('WORKER_QUEUE_SIZE', 100))
ENQUEUE_TIMEOUT = float(os.getenv('ENQUEUE_TIMEOUT', 1))


@dataclass(frozen=True)
class ServiceConfig:
    """Knobs of the order coordinator, debt engine and monitors"""
    order_ready_timeout: float = 40 * 60
    delivery_timeout: float = 2 * 60 * 60
    wait_between_status_check: float = 20
    time_till_get_ready_message: float = 2 * 60
    dont_join_after: str = ''
    dont_join_after_tz: str = ''
    debt_reminder_interval: float = 3 * 60 * 60
    debt_maximum_duration: float = 24 * 60 * 60
    no_messages_before_hour: int = 9
    no_messages_after_hour: int = 21
    mark_as_paid_reaction: str = '🤝'
    host_remove_debts_reaction: str = '👎'
    order_destination_emoji: str = '🏢'
    user_cache_max_age: float = 6 * 24 * 60 * 60


def service_config() -> ServiceConfig:
    return ServiceConfig(
        order_ready_timeout=ORDER_READY_TIMEOUT,
        delivery_timeout=DELIVERY_TIMEOUT,
        wait_between_status_check=WAIT_BETWEEN_STATUS_CHECK,
        time_till_get_ready_message=TIME_TILL_GET_READY_MESSAGE,
        dont_join_after=DONT_JOIN_AFTER,
        dont_join_after_tz=DONT_JOIN_AFTER_TZ,
        debt_reminder_interval=DEBT_REMINDER_INTERVAL,
        debt_maximum_duration=DEBT_MAXIMUM_DURATION,
        no_messages_before_hour=NO_MESSAGES_BEFORE_HOUR,
        no_messages_after_hour=NO_MESSAGES_AFTER_HOUR,
        mark_as_paid_reaction=MARK_AS_PAID_REACTION,
        host_remove_debts_reaction=HOST_REMOVE_DEBTS_REACTION,
        order_destination_emoji=ORDER_DESTINATION_EMOJI,
        user_cache_max_age=USER_CACHE_MAX_AGE,
    )


def validate():
    # Validate required settings
    if not BOT_TOKEN:
        raise ValueError("BOT_TOKEN not found in .env file")
    if not DATABASE_URL:
        raise ValueError("DATABASE_URL not found in .env file")
