"""Backfill of index tags on records written before tagging existed.

Older records live under the same paths but carry no ``type`` tag, so the
tag index cannot find them.  The migration lists every blob under each legacy
prefix and attaches the missing tag.  Blobs are retagged in parallel and a
failure on one blob never stops the others; all failures are reported
together in a ``MigrationError``.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from azstore.backends import BlobBackend
from azstore.constants import LEGACY_PREFIXES, TYPE_TAG
from azstore.errors import MigrationError

logger = logging.getLogger(__name__)


class Migration:
    """Retags legacy records so they become visible to tag queries.

    Args:
        backend: Backend holding the records.
        prefixes: Maps a legacy path prefix to the item type it holds.
        max_workers: Maximum number of parallel retag calls.
    """

    def __init__(
        self,
        backend: BlobBackend,
        prefixes: dict[str, str] | None = None,
        max_workers: int = 10,
    ) -> None:
        self._backend = backend
        self._prefixes = LEGACY_PREFIXES if prefixes is None else prefixes
        self._max_workers = max_workers

    def run(self) -> int:
        """Retag every legacy record. Returns the number of records retagged."""
        errors: list[Exception] = []
        retagged = 0
        for prefix, item_type in self._prefixes.items():
            try:
                names = self._backend.list_names(prefix)
            except Exception as exc:
                raise MigrationError(
                    [
                        RuntimeError(
                            f"unable to list {item_type} for migration to the tagged "
                            f"storage format: {exc}"
                        )
                    ]
                ) from exc

            logger.info("migrating %d %s record(s) under %s", len(names), item_type, prefix)
            done, failed = self._retag_all(names, item_type)
            retagged += done
            errors.extend(failed)

        if errors:
            raise MigrationError(errors)
        return retagged

    def _retag_all(self, names: list[str], item_type: str) -> tuple[int, list[Exception]]:
        if not names:
            return 0, []
        tags = {TYPE_TAG: item_type}
        errors: list[Exception] = []
        done = 0
        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            future_to_name = {
                executor.submit(self._backend.set_tags, name, tags): name for name in names
            }
            for future in as_completed(future_to_name):
                name = future_to_name[future]
                try:
                    future.result()
                except Exception as exc:
                    logger.warning("could not retag %s: %s", name, exc)
                    errors.append(RuntimeError(f"could not retag {name}: {exc}"))
                else:
                    done += 1
        return done, errors
