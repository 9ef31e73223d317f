"""Pass-state file loading and saving.

The pass-state records, per test file, the content hash the file had the
last time all of its tests passed. The runner uses it to skip files that
have not changed since then.

State file structure:
    version: 1
    lastPassedHashes:
      basic: "3f786850e387550fdab836ed7e6dc881de23001b"

The file is read permissively: if it is missing, empty, unparsable or of
another version, a fresh state is used and the file is rewritten after
the next run.
"""

import logging
import os
import tempfile
from typing import Any, Dict

import yaml

from .errors import StateFilesystemError
from .models import PassState

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class PassStateManager:
    """Loads and atomically saves the PassState at a fixed path.

    Example:
        >>> manager = PassStateManager("~/.selftest-state.yaml")
        >>> state = manager.load()
        >>> state.last_passed_hashes["basic"] = "3f78..."
        >>> manager.save(state)
    """

    def __init__(self, state_path: str):
        self.state_path = os.path.expanduser(state_path)

    def load(self) -> PassState:
        """Load the pass-state, falling back to a fresh one.

        Raises:
            StateFilesystemError: If the file exists but cannot be read
        """
        try:
            with open(self.state_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return PassState()
        except PermissionError:
            raise StateFilesystemError(self.state_path, 'read', 'Permission denied')
        except OSError as e:
            raise StateFilesystemError(self.state_path, 'read', str(e))

        if not content.strip():
            return PassState()

        try:
            state_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            logger.warning(f"Ignoring unreadable state file {self.state_path}: {e}")
            return PassState()

        if not isinstance(state_dict, dict):
            logger.warning(f"Ignoring state file {self.state_path}: not a mapping")
            return PassState()

        return self._parse_state(state_dict)

    def save(self, state: PassState) -> None:
        """Replace the state file with the given state in one step.

        The content is written to a temporary file next to the target and
        moved over it, so readers never see a partially written file.

        Raises:
            StateFilesystemError: If the file cannot be written
        """
        state_dict = {
            'version': state.version,
            'lastPassedHashes': dict(state.last_passed_hashes),
        }
        yaml_str = yaml.safe_dump(
            state_dict,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False
        )

        state_dir = os.path.dirname(self.state_path) or '.'
        try:
            os.makedirs(state_dir, exist_ok=True)
        except OSError as e:
            raise StateFilesystemError(state_dir, 'create_directory', str(e))

        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                'w',
                encoding='utf-8',
                dir=state_dir,
                prefix='.selftest-state-',
                suffix='.tmp',
                delete=False,
            ) as tmp:
                tmp_path = tmp.name
                tmp.write(yaml_str)
            os.replace(tmp_path, self.state_path)
        except PermissionError:
            self._discard(tmp_path)
            raise StateFilesystemError(self.state_path, 'write', 'Permission denied')
        except OSError as e:
            self._discard(tmp_path)
            raise StateFilesystemError(self.state_path, 'write', str(e))

        logger.debug(f"Saved pass-state to {self.state_path}")

    @staticmethod
    def _discard(tmp_path) -> None:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)

    def _parse_state(self, state_dict: Dict[str, Any]) -> PassState:
        if state_dict.get('version') != STATE_VERSION:
            logger.info(
                f"State file version {state_dict.get('version')!r} is not "
                f"{STATE_VERSION}, starting fresh"
            )
            return PassState()

        hashes = state_dict.get('lastPassedHashes') or {}
        if not isinstance(hashes, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in hashes.items()
        ):
            logger.warning(f"Ignoring malformed lastPassedHashes in {self.state_path}")
            return PassState()

        return PassState(version=STATE_VERSION, last_passed_hashes=dict(hashes))
