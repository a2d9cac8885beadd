# modhost/scripts/evaluator.py
from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

from modhost.core.errors import SecurityViolationError
from modhost.core.redaction import redactSignalToken
from modhost.scripts.signals import CallbackSignal, SignalSyntaxError, looksLikeSignal, parseSignal

logger = logging.getLogger(__name__)

__all__ = ["METHODS_WITH_RETURN_VALUES", "TokenProvider", "CallbackEvaluator", "snakeToCamel", "camelToSnake"]



# Methods that answer with a value. The stderr channel is fire-and-forget,
# so these are never dispatched from a signal.
METHODS_WITH_RETURN_VALUES = frozenset({
    "tag.get", "tag.get_recents",
    "tag_group.get", "tag_group.create",
    "library.info", "library.get_name", "library.get_path", "library.get_modification_time",
    "window.is_minimized", "window.is_maximized", "window.is_full_screen", "window.get_size",
    "window.get_bounds", "window.is_resizable", "window.is_always_on_top", "window.get_position",
    "window.get_opacity",
    "app.is_dark_colors", "app.get_path", "app.get_file_icon", "app.get_version", "app.get_build",
    "app.get_locale", "app.get_arch", "app.get_platform", "app.get_env", "app.get_exec_path",
    "app.get_pid", "app.is_windows", "app.is_mac", "app.is_running_under_arm64_translation",
    "app.get_theme",
    "os.tmpdir", "os.version", "os.type", "os.release", "os.hostname", "os.homedir", "os.arch",
    "screen.get_cursor_screen_point", "screen.get_primary_display", "screen.get_all_displays",
    "screen.get_display_nearest_point",
    "item.get", "item.get_all", "item.get_by_id", "item.get_by_ids", "item.get_selected",
    "item.add_from_url", "item.add_from_base64", "item.add_from_path", "item.add_bookmark", "item.open",
    "folder.create_subfolder", "folder.get", "folder.get_all", "folder.get_by_id",
    "folder.get_by_ids", "folder.get_selected", "folder.get_recents",
    "dialog.show_open_dialog", "dialog.show_save_dialog",
    "clipboard.has", "clipboard.read_text", "clipboard.read_buffer", "clipboard.read_image",
    "clipboard.read_html",
})

TokenProvider = Callable[[], "str | None | Awaitable[str | None]"]

_SNAKE_RE = re.compile(r"_([a-z0-9])")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")



def snakeToCamel(name: str) -> str:
    return _SNAKE_RE.sub(lambda match: match.group(1).upper(), name)



def camelToSnake(name: str) -> str:
    return _CAMEL_RE.sub(lambda match: "_" + match.group(1).lower(), name)



class CallbackEvaluator:
    """
    Turns validated stderr signals into host API calls.

    The token is fetched from `tokenProvider` for every signal, so output
    produced before a token rotation can never act afterwards. Any line
    shaped like a signal is consumed: it is dispatched, or rejected and
    dropped, but never passed on as ordinary output.
    """

    def __init__(self, host: Any, tokenProvider: TokenProvider):
        self.host = host
        self.tokenProvider = tokenProvider
        self.stats = {"dispatched": 0, "rejected": 0, "failed": 0}

    async def currentToken(self) -> str | None:
        token = self.tokenProvider()
        if inspect.isawaitable(token):
            token = await token
        return token or None

    async def handleLine(self, line: str, pluginId: str) -> str | None:
        """Returns the line when it is ordinary output, None when it was a signal."""
        if not looksLikeSignal(line):
            return line
        await self.processSignalLine(line, pluginId)
        return None

    async def processSignalLine(self, line: str, pluginId: str) -> bool:
        """True when the signal was dispatched (even if the host call then failed)."""
        try:
            signal = parseSignal(line)
            await self.validate(signal, pluginId)
        except SignalSyntaxError as err:
            self.stats["rejected"] += 1
            logger.debug("Dropping malformed signal %r: %s", redactSignalToken(line.strip()), err)
            return False
        except SecurityViolationError as err:
            self.stats["rejected"] += 1
            logger.warning("Rejected signal from '%s': %s", pluginId, err)
            return False

        await self.dispatch(signal)
        return True

    async def validate(self, signal: CallbackSignal, pluginId: str) -> None:
        token = await self.currentToken()
        if not token or signal.token != token:
            raise SecurityViolationError(f"stale or forged token for '{signal.method}'")
        if signal.pluginId != pluginId:
            raise SecurityViolationError(f"plugin id '{signal.pluginId}' does not match running script '{pluginId}'")
        if signal.method in METHODS_WITH_RETURN_VALUES or camelToSnake(signal.method) in METHODS_WITH_RETURN_VALUES:
            raise SecurityViolationError(f"'{signal.method}' returns a value and cannot be called from a signal")

    def _resolve(self, signal: CallbackSignal) -> Callable[..., Any] | None:
        namespace = getattr(self.host, signal.namespace, None)
        if namespace is None:
            namespace = getattr(self.host, snakeToCamel(signal.namespace), None)
        if namespace is None:
            logger.error("Host API has no namespace '%s'", signal.namespace)
            return None
        fn = getattr(namespace, signal.methodName, None)
        if fn is None:
            fn = getattr(namespace, snakeToCamel(signal.methodName), None)
        if not callable(fn):
            logger.error("Host API has no method '%s'", signal.method)
            return None
        return fn

    async def dispatch(self, signal: CallbackSignal) -> Any:
        """
        Call the host: no args -> fn(), only `options` -> fn(options),
        otherwise fn(args). Host errors are logged, never raised.
        """
        fn = self._resolve(signal)
        if fn is None:
            self.stats["failed"] += 1
            return None
        args = dict(signal.args)
        try:
            if not args:
                result = fn()
            elif list(args) == ["options"]:
                result = fn(args["options"])
            else:
                result = fn(args)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            self.stats["failed"] += 1
            logger.exception("Host call '%s' failed", signal.method)
            return None
        self.stats["dispatched"] += 1
        logger.debug("Dispatched '%s'", signal.method)
        return result
