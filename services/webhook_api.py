"""
Webhook API server for site-to-bot communication.

The match site calls these endpoints when a match starts and when it ends;
the bot answers with the channels it created or the teardown outcome.
"""

import json
from typing import TYPE_CHECKING, Any

from aiohttp import web

from config.config_loader import ConfigLoader, MatchSettings
from helpers.webhook_auth import check_request_auth
from utils.errors import MatchError, NotFoundError, ValidationError
from utils.logging import get_logger

from .payloads import parse_teardown_request

if TYPE_CHECKING:
    from services.service_container import ServiceContainer

logger = get_logger(__name__)


class WebhookAPIServer:
    """
    Lightweight HTTP server receiving match webhooks.

    Runs alongside the Discord bot on the same event loop. Every webhook is
    authenticated against the raw body before it is parsed.
    """

    def __init__(self, services: "ServiceContainer", settings: MatchSettings):
        self.services = services
        self.bot = services.bot
        self.settings = settings
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self.site: web.TCPSite | None = None

        self.host = settings.webhook_host
        self.port = settings.webhook_port

        self.app.router.add_get("/health", self.health)
        for path in ("/webhook/partida-criada", "/webhook/match-created"):
            self.app.router.add_post(path, self.match_created)
        for path in ("/webhook/partida-finalizada", "/webhook/match-finished"):
            self.app.router.add_post(path, self.match_finished)

        logger.info(f"Webhook API configured on {self.host}:{self.port}")

    async def start(self):
        """Start the webhook server."""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            self.site = web.TCPSite(self.runner, self.host, self.port)
            await self.site.start()
            logger.info(f"Webhook server started on http://{self.host}:{self.port}")
        except Exception as e:
            logger.exception("Failed to start webhook server", exc_info=e)
            raise

    async def stop(self):
        """Stop the webhook server."""
        try:
            if self.site:
                await self.site.stop()
            if self.runner:
                await self.runner.cleanup()
            logger.info("Webhook server stopped")
        except Exception as e:
            logger.exception("Error stopping webhook server", exc_info=e)

    async def _authenticate(self, request: web.Request) -> tuple[bytes, web.Response | None]:
        """Read the raw body and verify it; returns an error response on failure."""
        body = await request.read()
        result = check_request_auth(
            self.settings.webhook_secret,
            request.headers,
            body,
            tolerance_seconds=self.settings.hmac_tolerance_seconds,
        )
        if not result.valid:
            logger.warning(
                f"Rejected webhook {request.path} from {request.remote}: {result.error}"
            )
            return body, web.json_response(
                {"success": False, "error": "Unauthorized"}, status=401
            )
        return body, None

    @staticmethod
    def _decode(body: bytes) -> Any:
        try:
            return json.loads(body or b"{}")
        except ValueError as e:
            raise ValidationError("Malformed JSON body") from e

    @staticmethod
    def _error(error: Exception, status: int) -> web.Response:
        return web.json_response({"success": False, "error": str(error)}, status=status)

    async def health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        bot_user = getattr(self.bot, "user", None) if self.bot else None
        try:
            active = len(await self.services.store.list_active_matches())
        except Exception as e:
            logger.warning(f"Health check could not read match store: {e}")
            active = None
        try:
            sweeper_state = self.services.sweeper.state.value
        except RuntimeError:
            sweeper_state = None
        service_status = {}
        for service in self.services.get_all_services():
            health = await service.health_check()
            service_status[service.name] = health["status"]
        return web.json_response(
            {
                "status": "ok",
                "bot": str(bot_user) if bot_user else None,
                "active_matches": active,
                "sweeper": sweeper_state,
                "services": service_status,
                "config": ConfigLoader.get_config_status()["config_status"],
            }
        )

    async def match_created(self, request: web.Request) -> web.Response:
        """
        Create the voice channels of a new match.

        Path: POST /webhook/partida-criada
        Headers: Authorization: Bearer <secret> or X-Signature/X-Timestamp
        """
        body, denied = await self._authenticate(request)
        if denied is not None:
            return denied

        try:
            payload = self._decode(body)
            result = await self.services.matches.create(payload)
            return web.json_response(result.to_response())
        except MatchError as e:
            logger.warning(f"Match creation rejected: {e}")
            return self._error(e, e.status_code)
        except Exception as e:
            logger.exception("Error handling match creation webhook", exc_info=e)
            return self._error(e, 500)

    async def match_finished(self, request: web.Request) -> web.Response:
        """
        Tear down the voice channels of a finished match.

        Path: POST /webhook/partida-finalizada
        Body: {"match_id": ..., "channels": {"team_a": ..., "team_b": ...}}
        """
        body, denied = await self._authenticate(request)
        if denied is not None:
            return denied

        try:
            teardown = parse_teardown_request(self._decode(body))
            result = await self.services.matches.teardown(
                teardown.match_id, teardown.override
            )
            return web.json_response(
                result.to_response(), status=200 if result.success else NotFoundError.status_code
            )
        except MatchError as e:
            logger.warning(f"Match teardown rejected: {e}")
            return self._error(e, e.status_code)
        except Exception as e:
            logger.exception("Error handling match finished webhook", exc_info=e)
            return self._error(e, 500)
