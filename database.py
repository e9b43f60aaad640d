"""
Single-document JSON store.

The whole shop lives in one JSON file holding four collections:
products, users, orders and reviews. Every operation loads the document,
mutates its private copy and writes it back. A process-wide lock around the
full load/mutate/save cycle keeps concurrent requests from overwriting each
other's changes.
"""
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from bson import ObjectId

from errors import StorageFailure

logger = logging.getLogger(__name__)

COLLECTIONS = ("products", "users", "orders", "reviews")

SEED_PRODUCTS: List[Dict[str, Any]] = [
    {"id": "1", "name": "PogoJump Neon", "description": "Beginner-friendly with vibrant LED lights", "price": 89.0, "image": "neon", "featured": True},
    {"id": "2", "name": "PogoJump Pro", "description": "Professional grade with higher bounce", "price": 149.0, "image": "pro", "featured": True},
    {"id": "3", "name": "PogoJump Junior", "description": "For kids with extra safety features", "price": 69.0, "image": "junior", "featured": True},
    {"id": "4", "name": "PogoJump Carbon", "description": "Ultra-light carbon fiber design", "price": 199.0, "image": "carbon", "featured": False},
    {"id": "5", "name": "PogoJump Extreme", "description": "Maximum height with advanced springs", "price": 179.0, "image": "extreme", "featured": True},
]


def seed_document() -> Dict[str, List[Dict[str, Any]]]:
    return {
        "products": [dict(p) for p in SEED_PRODUCTS],
        "users": [],
        "orders": [],
        "reviews": [],
    }


def new_id() -> str:
    return str(ObjectId())


class DocumentStore:
    def __init__(self, path, seed: Optional[Dict[str, Any]] = None):
        self.path = Path(path)
        self._seed = seed
        self._lock = threading.Lock()

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            document = self._seed if self._seed is not None else seed_document()
            logger.info("Seeding new document at %s", self.path)
            self.save(document)
            return json.loads(json.dumps(document))
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (OSError, ValueError) as e:
            logger.exception("Failed to read document %s", self.path)
            raise StorageFailure(f"Unreadable document: {e}") from e
        if not isinstance(document, dict):
            logger.error("Document %s is not a JSON object", self.path)
            raise StorageFailure("Document root must be an object")
        for name in COLLECTIONS:
            # older documents predate the reviews collection or carry it as null
            if document.get(name) is None:
                document[name] = []
            if not isinstance(document[name], list):
                logger.error("Collection %r in %s is not a list", name, self.path)
                raise StorageFailure(f"Collection {name} must be a list")
        return document

    def save(self, document: Dict[str, Any]) -> None:
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, prefix=f".{self.path.name}.", suffix=".tmp", delete=False
            ) as fh:
                tmp_name = fh.name
                json.dump(document, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            logger.exception("Failed to write document %s", self.path)
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageFailure(f"Unwritable document: {e}") from e

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self.load()

    @contextmanager
    def transaction(self) -> Iterator[Dict[str, Any]]:
        """Yield the loaded document and save it once the block completes.

        Nothing is written if the block raises.
        """
        with self._lock:
            document = self.load()
            yield document
            self.save(document)
