"""Optional external hook for inbound Telegram messages.

Loads a user-supplied Python module (if present) that can intercept, buffer,
enrich or otherwise transform inbound messages before the default message
processor sees them.

Hook path is resolved from (in order):
  1. REPLYSPLIT_TELEGRAM_HOOK env var
  2. config.telegram_hook_path (~/.replysplit/telegram_hook.py)

The module must define:
  async def on_inbound_message(args: InboundHookArgs) -> None

A hook that handles the message itself (e.g. buffering a batch) simply does
not call args.process_message. When it wants normal processing it awaits
args.process_message(update, all_media, store_allow_from, options) once.

A missing file, a failed import or a missing on_inbound_message all fall back
to default processing; no hook failure blocks delivery.
"""

import importlib.util
import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Protocol

from telegram import Update

from ..config import config

logger = logging.getLogger(__name__)

HOOK_ENTRY_POINT = "on_inbound_message"
HOOK_MODULE_NAME = "replysplit_telegram_hook"


@dataclass(frozen=True)
class InboundOptions:
    """Per-message processing overrides passed along with an update."""

    message_id_override: str | None = None
    force_was_mentioned: bool = False
    # Text to process instead of the message's own text (Message is immutable)
    body_override: str | None = None


ProcessMessageFn = Callable[
    [Update, list[Any], list[str], InboundOptions | None], Awaitable[None]
]


@dataclass
class InboundHookArgs:
    """Arguments handed to the hook's on_inbound_message()."""

    update: Update
    all_media: list[Any]
    store_allow_from: list[str]
    options: InboundOptions | None
    process_message: ProcessMessageFn
    log: Callable[[str], None]


class InboundHook(Protocol):
    async def on_inbound_message(self, args: InboundHookArgs) -> None: ...


def resolve_hook_path() -> Path:
    """Hook module path: REPLYSPLIT_TELEGRAM_HOOK, else the config default."""
    env_path = os.getenv("REPLYSPLIT_TELEGRAM_HOOK")
    if env_path:
        return Path(env_path).expanduser()
    return config.telegram_hook_path


def _import_module(path: Path) -> ModuleType:
    spec = importlib.util.spec_from_file_location(HOOK_MODULE_NAME, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot build import spec for {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_hook(path: Path) -> InboundHook | None:
    """Import the hook module at path, or return None if it is unusable."""
    if not path.is_file():
        logger.info("telegram-hook: no hook file found, using default processing")
        return None

    try:
        module = _import_module(path)
    except Exception as e:
        logger.error("telegram-hook: failed to load hook from %s: %s", path, e)
        return None

    if not callable(getattr(module, HOOK_ENTRY_POINT, None)):
        logger.warning(
            "telegram-hook: hook at %s does not export %s, skipping",
            path,
            HOOK_ENTRY_POINT,
        )
        return None

    logger.info("telegram-hook: loaded hook from %s", path)
    return module  # type: ignore[return-value]


def _hook_log(message: str) -> None:
    logger.info("telegram-hook: %s", message)


def wrap_with_hook(original: ProcessMessageFn) -> ProcessMessageFn:
    """Wrap a message processor with the optional external hook.

    The hook is loaded lazily on the first call, once; a failed load is
    remembered and every later call goes straight to original.
    """
    resolved = False
    hook: InboundHook | None = None

    def _get_hook() -> InboundHook | None:
        nonlocal resolved, hook
        if not resolved:
            resolved = True
            hook = load_hook(resolve_hook_path())
        return hook

    async def process(
        update: Update,
        all_media: list[Any],
        store_allow_from: list[str],
        options: InboundOptions | None = None,
    ) -> None:
        active_hook = _get_hook()
        if active_hook is None:
            await original(update, all_media, store_allow_from, options)
            return

        called = False

        async def process_message(
            p_update: Update,
            p_media: list[Any],
            p_allow_from: list[str],
            p_options: InboundOptions | None = None,
        ) -> None:
            nonlocal called
            called = True
            await original(p_update, p_media, p_allow_from, p_options)

        try:
            await active_hook.on_inbound_message(
                InboundHookArgs(
                    update=update,
                    all_media=all_media,
                    store_allow_from=store_allow_from,
                    options=options,
                    process_message=process_message,
                    log=_hook_log,
                )
            )
        except Exception as e:
            # Raised by default processing, not by the hook
            if called:
                raise
            logger.error("telegram-hook: on_inbound_message failed: %s", e)
            await original(update, all_media, store_allow_from, options)

    return process
