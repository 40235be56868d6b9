from handlers.start import router as start_router
from handlers.links import router as links_router
from handlers.reactions import router as reactions_router
from handlers.admin import create_admin_app

__all__ = ['start_router', 'links_router', 'reactions_router', 'create_admin_app']
