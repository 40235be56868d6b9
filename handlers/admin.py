import logging
import shlex
from typing import Set

from aiohttp import web

from services.errors import NotFoundError
from services.transport import Transport
from services.users import UserDirectory

logger = logging.getLogger(__name__)

USAGE = 'USAGE: "<name>" @<user>'

directory_key = web.AppKey("directory", UserDirectory)
transport_key = web.AppKey("transport", Transport)
admins_key = web.AppKey("admins", set)
timezone_key = web.AppKey("timezone", str)


async def add_user_command(request: web.Request) -> web.Response:
    """Slash command: /add-user "<Wolt name>" @<telegram username>"""
    form = await request.post()

    user_id = form.get("user_id", "")
    if user_id not in request.app[admins_key]:
        logger.warning(f"Unauthorized /add-user from {user_id!r}")
        return web.Response(status=401, text="Unauthorized")

    command = form.get("command", "")
    if command != "/add-user":
        logger.error(f"Unknown command {command!r}")
        return web.Response(status=400, text=f"Unknown command {command!r}")

    try:
        parts = shlex.split(form.get("text", ""))
    except ValueError:
        parts = []
    if len(parts) != 2 or not parts[1].startswith("@"):
        return web.Response(text=USAGE)

    name, username = parts[0], parts[1][1:]
    directory = request.app[directory_key]
    try:
        account = await directory.find_account(username)
    except NotFoundError as e:
        return web.Response(text=str(e))

    try:
        await directory.add_user(name, account, timezone=request.app[timezone_key] or None)
    except Exception as e:
        logger.error(f"❌ Error adding user {name!r}: {e}", exc_info=True)
        return web.Response(text=f"Error adding user: {e}")

    mention = request.app[transport_key].mention(account.transport_id)
    logger.info(f"👤 {user_id} added {account.transport_id} as {name!r}")
    return web.Response(text=f'OK, got you. I added {mention} as "{name}"')


def create_admin_app(directory: UserDirectory, transport: Transport, admin_ids: Set[str],
                     default_timezone: str = "") -> web.Application:
    app = web.Application()
    app[directory_key] = directory
    app[transport_key] = transport
    app[admins_key] = set(admin_ids)
    app[timezone_key] = default_timezone
    app.router.add_post("/add-user", add_user_command)
    return app
