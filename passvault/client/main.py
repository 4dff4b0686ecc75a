import logging
import threading
import flet as ft

from passvault.client.config import get_settings
from passvault.client.state import AppContext
from passvault.client.views.login import LoginView
from passvault.client.views.register import RegisterView
from passvault.client.views.vault import VaultView
from passvault.core.errors import user_message
from passvault.core.events import ErrorEvent, SessionChanged, SessionStatus

logger = logging.getLogger(__name__)


def main(page: ft.Page):
    settings = get_settings()
    ctx = AppContext.from_settings(settings)

    page.title = "PassVault"
    page.theme_mode = ft.ThemeMode.LIGHT

    def route_change(route):
        logger.debug("Route change: %s", page.route)
        page.overlay.clear()
        page.views.clear()

        try:
            if page.route == "/vault" and ctx.session.is_signed_in:
                page.views.append(VaultView(page, ctx))
            elif page.route == "/register":
                page.views.append(RegisterView(page, ctx))
            else:
                page.views.append(LoginView(page, ctx))
            page.update()
        except Exception:
            logger.exception("Failed to build view for %s", page.route)
            raise

    def view_pop(view):
        if len(page.views) > 1:
            page.views.pop()
            top_view = page.views[-1]
            page.go(top_view.route or "/login")
        else:
            route_change(page.route)

    def on_event(event):
        if isinstance(event, SessionChanged):
            if event.status == SessionStatus.AUTHENTICATED and page.route != "/vault":
                page.go("/vault")
            elif event.status == SessionStatus.UNAUTHENTICATED and page.route == "/vault":
                page.go("/login")
        elif isinstance(event, ErrorEvent):
            page.open(ft.SnackBar(ft.Text(user_message(event.error))))

    def on_disconnect(e):
        ctx.close()

    ctx.add_listener(on_event)
    page.on_route_change = route_change
    page.on_view_pop = view_pop
    page.on_disconnect = on_disconnect

    threading.Thread(target=ctx.run, name="event-pump", daemon=True).start()
    page.go("/login")
    ctx.start()


def run():
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ft.app(target=main)


if __name__ == "__main__":
    run()
