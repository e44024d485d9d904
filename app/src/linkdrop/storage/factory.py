from typing import Any
from linkdrop.storage.base import LinkStore
from linkdrop.storage.dropbox import DropboxStore
from linkdrop.storage.file_store import FileStore
from linkdrop.storage.jsonbin import JsonBinStore

_BACKENDS = {
    JsonBinStore.name: JsonBinStore,
    DropboxStore.name: DropboxStore,
    FileStore.name: FileStore,
}


def build_store(kind: str, **settings: Any) -> LinkStore:
    try:
        backend = _BACKENDS[kind]
    except KeyError:
        raise ValueError(f"unknown storage backend {kind!r}, expected one of {sorted(_BACKENDS)}") from None
    return backend(**settings)


__all__ = ["build_store"]
