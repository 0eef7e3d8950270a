"""
Watchlist persistence.

Named symbol lists stored as one JSON document:

    {"lists": [{"id": "wl_default", "name": "Watchlist", "symbols": ["AAPL"]}]}

The market-data layer only ever reads symbol lists from here.
"""
import json
import os
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import ValidationError

from ..config import settings
from ..logging_config import get_logger
from ..schemas import WatchlistInfo, WatchlistsData

logger = get_logger(__name__)

DEFAULT_LIST_ID = "wl_default"
DEFAULT_LIST_NAME = "Watchlist"


class WatchlistNotFoundError(Exception):
    """No watchlist with the given id."""
    pass


def _clean_symbol(symbol: str) -> str:
    return symbol.strip().upper()


def _default_data() -> WatchlistsData:
    return WatchlistsData(lists=[WatchlistInfo(id=DEFAULT_LIST_ID, name=DEFAULT_LIST_NAME)])


class WatchlistStore:
    """Reads and writes the watchlist document. Every mutation is saved immediately."""

    def __init__(self, path: Optional[str] = None):
        self._path = Path(path or settings.watchlist_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> WatchlistsData:
        """
        Read the document.

        A missing or unreadable file yields a single empty default list.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return _default_data()
        except OSError as e:
            logger.warning(f"Could not read watchlists from {self._path}: {e}")
            return _default_data()

        try:
            data = WatchlistsData.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Corrupt watchlist file {self._path}, starting fresh: {e}")
            return _default_data()
        return self._normalized(data)

    def _save(self, data: WatchlistsData) -> WatchlistsData:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(data.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, self._path)
        return data

    @staticmethod
    def _normalized(data: WatchlistsData) -> WatchlistsData:
        for wl in data.lists:
            seen: List[str] = []
            for symbol in wl.symbols:
                cleaned = _clean_symbol(symbol)
                if cleaned and cleaned not in seen:
                    seen.append(cleaned)
            wl.symbols = seen
        return data

    @staticmethod
    def _find(data: WatchlistsData, list_id: str) -> WatchlistInfo:
        for wl in data.lists:
            if wl.id == list_id:
                return wl
        raise WatchlistNotFoundError(f"Watchlist not found: {list_id}")

    # ============ Lists ============

    def get_list(self, list_id: str) -> WatchlistInfo:
        return self._find(self.load(), list_id)

    def create_list(self, name: str) -> WatchlistsData:
        data = self.load()
        list_id = f"wl_{uuid.uuid4().hex[:8]}"
        data.lists.append(WatchlistInfo(id=list_id, name=name.strip() or DEFAULT_LIST_NAME))
        logger.info(f"Created watchlist {list_id} ({name})")
        return self._save(data)

    def rename_list(self, list_id: str, name: str) -> WatchlistsData:
        data = self.load()
        self._find(data, list_id).name = name.strip() or DEFAULT_LIST_NAME
        return self._save(data)

    def delete_list(self, list_id: str) -> WatchlistsData:
        data = self.load()
        wl = self._find(data, list_id)
        data.lists.remove(wl)
        logger.info(f"Deleted watchlist {list_id}")
        return self._save(data)

    # ============ Symbols ============

    def add_symbol(self, list_id: str, symbol: str) -> WatchlistsData:
        return self.add_symbols(list_id, [symbol])

    def add_symbols(self, list_id: str, symbols: Iterable[str]) -> WatchlistsData:
        """Append symbols not already on the list, keeping insertion order."""
        data = self.load()
        wl = self._find(data, list_id)
        for symbol in symbols:
            cleaned = _clean_symbol(symbol)
            if cleaned and cleaned not in wl.symbols:
                wl.symbols.append(cleaned)
        return self._save(data)

    def remove_symbol(self, list_id: str, symbol: str) -> WatchlistsData:
        data = self.load()
        wl = self._find(data, list_id)
        cleaned = _clean_symbol(symbol)
        wl.symbols = [s for s in wl.symbols if s != cleaned]
        return self._save(data)

    def all_symbols(self) -> List[str]:
        """Union of every list's symbols, sorted."""
        return sorted({s for wl in self.load().lists for s in wl.symbols})

    # ============ Export / Import ============

    def export_data(self) -> WatchlistsData:
        return self.load()

    def import_data(self, data: WatchlistsData) -> WatchlistsData:
        """Replace every list with the imported document."""
        data = self._normalized(data.model_copy(deep=True))
        if not data.lists:
            data = _default_data()
        logger.info(f"Imported {len(data.lists)} watchlists")
        return self._save(data)


_watchlist_store: Optional[WatchlistStore] = None


def get_watchlist_store() -> WatchlistStore:
    """Get the singleton watchlist store instance."""
    global _watchlist_store
    if _watchlist_store is None:
        _watchlist_store = WatchlistStore()
    return _watchlist_store
