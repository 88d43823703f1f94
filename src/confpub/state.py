"""Remembered publishing state.

Stores the last published page ID and space key between runs.
"""

import json
from pathlib import Path
from typing import NotRequired, TypedDict


class PublishStateDict(TypedDict):
    """Persisted state structure."""

    last_page_id: NotRequired[str]
    last_space_key: NotRequired[str]


class StateStore:
    """JSON file holding the last page ID and space key."""

    def __init__(self, path: Path) -> None:
        """Initialize store.

        Args:
            path: Location of the state file
        """
        self.path = path

    def load(self) -> PublishStateDict:
        """Read the state file.

        Returns:
            Stored state, empty if the file is missing or unreadable
        """
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError):
            return {}
        if not isinstance(data, dict):
            return {}
        state: PublishStateDict = {}
        if isinstance(data.get('last_page_id'), str):
            state['last_page_id'] = data['last_page_id']
        if isinstance(data.get('last_space_key'), str):
            state['last_space_key'] = data['last_space_key']
        return state

    @property
    def last_page_id(self) -> str | None:
        return self.load().get('last_page_id')

    @property
    def last_space_key(self) -> str | None:
        return self.load().get('last_space_key')

    def remember(self, page_id: str, space_key: str | None = None) -> None:
        """Persist the page ID (and optionally the space key).

        Args:
            page_id: Page ID to remember
            space_key: Space key to remember
        """
        state = self.load()
        state['last_page_id'] = page_id
        if space_key:
            state['last_space_key'] = space_key
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state, indent=2), encoding='utf-8')
