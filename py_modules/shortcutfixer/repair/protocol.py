"""Hands steam:// action URLs to the system URL handler."""

import logging
import subprocess
import sys
from typing import List

from ..errors import ProtocolDispatchError

logger = logging.getLogger(__name__)

STEAM_ACTIONS = ('uninstall', 'install')


def steam_action_url(action: str, app_id: str) -> str:
    if action not in STEAM_ACTIONS:
        raise ValueError(f"Unsupported Steam action: {action}")
    app_id = str(app_id).strip()
    if not app_id.isdigit():
        raise ValueError(f"Invalid Steam app id: {app_id!r}")
    return f"steam://{action}/{app_id}"


def _opener_command(url: str) -> List[str]:
    if sys.platform.startswith('win'):
        return ['cmd', '/C', 'start', '', url]
    if sys.platform == 'darwin':
        return ['open', url]
    return ['xdg-open', url]


class ProtocolDispatcher:
    """
    Fire-and-forget dispatch of Steam actions.

    Steam gives no signal about whether the uninstall/install went through;
    the only failure reported here is being unable to launch the opener.
    """

    def open_external_action(self, action: str, app_id: str) -> None:
        """
        Raises:
            ValueError: unknown action or non-numeric app id.
            ProtocolDispatchError: the system opener could not be started.
        """
        url = steam_action_url(action, app_id)
        logger.info(f"[Protocol] Opening {url}")
        try:
            subprocess.Popen(_opener_command(url),
                             stdout=subprocess.DEVNULL,
                             stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.error(f"[Protocol] Failed to open {url}: {e}")
            raise ProtocolDispatchError(url, e) from e
