"""
Bundle build coordinator.
Resolves tile set images, trims object tile sets, writes images and metadata
to the bundle writer, and rolls the bundle back when the build fails.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .config import BundleConfig
from .errors import (
    BundleBuildError, BundlerError, IdAssignmentError, MetadataWriteError,
    MissingImageError, UnnamedTileSetError, WriteError,
)
from .processing.metadata import encode_metadata
from .processing.metrics import trim_object_tile_set
from .tiles.base import ObjectTileSet, TileSet
from .tiles.bundle import AnyTileSet, TileSetBundle
from .tiles.description import load_bundle_description
from .tiles.ids import FileTileSetIDBroker, MemoryTileSetIDBroker, TileSetIDBroker
from .utils.image import PNG, RAW, ImageUtils
from .writers import BundleWriter, create_writer


class ItemState(Enum):
    """Processing state and outcome of a single tile set."""
    PENDING = "pending"
    TRIMMED = "trimmed"
    RAW_COPIED = "raw_copied"
    RE_ENCODED = "re_encoded"
    SKIPPED_UP_TO_DATE = "skipped_up_to_date"
    SKIPPED_MISSING_IMAGE = "skipped_missing_image"
    SKIPPED_UNNAMED = "skipped_unnamed"
    DONE = "done"
    FAILED = "failed"


# Recoverable errors that leave the tile set out of the bundle; any other
# recoverable error marks the item FAILED
SKIP_OUTCOMES = {
    UnnamedTileSetError: ItemState.SKIPPED_UNNAMED,
    MissingImageError: ItemState.SKIPPED_MISSING_IMAGE,
}


@dataclass
class ItemReport:
    """What happened to one declared tile set."""
    name: Optional[str]
    tile_set_id: Optional[int] = None
    outcome: ItemState = ItemState.PENDING
    state: ItemState = ItemState.PENDING
    output_path: Optional[str] = None
    message: str = ""


@dataclass
class BuildReport:
    """Result of a bundle build."""
    target: str
    items: List[ItemReport] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metadata_written: bool = False
    up_to_date: bool = False
    duration: float = 0.0

    def count(self, outcome: ItemState) -> int:
        return sum(1 for item in self.items if item.outcome == outcome)

    def item(self, name: str) -> Optional[ItemReport]:
        for item in self.items:
            if item.name == name:
                return item
        return None


@dataclass
class BundleJob:
    """A bundle that has been assembled and is ready to be written."""
    writer: BundleWriter
    bundle: TileSetBundle
    image_base: Path
    report: BuildReport

    @property
    def newest_source(self) -> float:
        return self.bundle.newest_source


class TileSetBundler:
    """
    Builds tile set bundles from bundle descriptions.

    A build runs in two phases. ``process`` parses the description, assigns
    tile set ids and decides whether the target is already up to date.
    ``create_bundle`` writes every tile set image and the metadata, then
    finalizes the bundle or rolls it back.
    """

    def __init__(self, config: Optional[BundleConfig] = None):
        self.config = config or BundleConfig()
        self.logger = self._setup_logging()

    def _setup_logging(self) -> logging.Logger:
        """Set up logging for the bundler."""
        logger = logging.getLogger("tileset_bundler")
        logger.setLevel(logging.INFO)

        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        return logger

    def build(self, description_path: Union[str, Path], target: Union[str, Path],
              id_broker: Optional[TileSetIDBroker] = None) -> BuildReport:
        """
        Build the bundle described by ``description_path`` into ``target``.

        Targets ending in ``.zip`` or ``.jar`` become archives, anything else
        a directory.

        Raises:
            BundleBuildError: If the build failed and was rolled back
            ArchiveFinalizeError: If the bundle could not be finalized
        """
        if id_broker is None:
            if self.config.id_store:
                id_broker = FileTileSetIDBroker(self.config.id_store)
            else:
                id_broker = MemoryTileSetIDBroker()

        start = time.time()
        job = self.prepare(id_broker, description_path, create_writer(target))
        if job.report.up_to_date:
            self.logger.info(f"Bundle {target} is up to date")
            report = job.report
        else:
            report = self.create_bundle(job)
        report.duration = time.time() - start
        return report

    def process(self, id_broker: TileSetIDBroker, description_path: Union[str, Path],
                writer: BundleWriter) -> Optional[BundleJob]:
        """
        Parse a bundle description and assemble its tile sets.

        Returns:
            The job to pass to ``create_bundle``, or None if ``writer`` is
            up to date with respect to every source file
        """
        job = self.prepare(id_broker, description_path, writer)
        return None if job.report.up_to_date else job

    def prepare(self, id_broker: TileSetIDBroker, description_path: Union[str, Path],
                writer: BundleWriter) -> BundleJob:
        """Like ``process`` but always returns the job, flagged when up to date."""
        description = load_bundle_description(description_path)
        image_base = Path(self.config.image_base) if self.config.image_base \
            else description.path.parent
        report = BuildReport(target=str(writer.target))

        # The bundle is stale if the description or any image is newer
        newest = description.newest_mtime
        bundle_items: List[Tuple[int, TileSet, ItemReport]] = []

        try:
            for tile_set in description.tile_sets:
                item = ItemReport(tile_set.name)
                report.items.append(item)
                try:
                    image_file = self._check_tile_set(tile_set, image_base)
                    tile_set_id = id_broker.get_tile_set_id(tile_set.name)
                except BundlerError as e:
                    if not e.recoverable:
                        raise
                    self._skip(report, item, e)
                    continue

                newest = max(newest, os.path.getmtime(image_file))
                item.tile_set_id = tile_set_id
                bundle_items.append((tile_set_id, tile_set, item))
        finally:
            try:
                id_broker.commit()
            except IdAssignmentError as e:
                self.logger.warning(f"Failure committing brokered tile set ids: {e}")

        bundle = TileSetBundle(newest_source=newest)
        for tile_set_id, tile_set, _ in bundle_items:
            bundle.add_tile_set(tile_set_id, tile_set)

        if writer.is_newer_than(newest):
            report.up_to_date = True
            for _, _, item in bundle_items:
                item.outcome = ItemState.SKIPPED_UP_TO_DATE
                item.state = ItemState.DONE

        return BundleJob(writer, bundle, image_base, report)

    def _check_tile_set(self, tile_set: TileSet, image_base: Path) -> Path:
        if not tile_set.name:
            raise UnnamedTileSetError(f"Tile set for image '{tile_set.image_path}' has no name")
        if tile_set.image_path is None:
            raise MissingImageError(f"Tile set '{tile_set.name}' has no image path")

        image_file = image_base / tile_set.image_path
        if not image_file.is_file():
            raise MissingImageError(
                f"Tile set '{tile_set.name}' is missing image file {image_file}",
                image_path=str(image_file),
            )
        return image_file

    def _skip(self, report: BuildReport, item: ItemReport, error: BundlerError) -> None:
        """Record a recoverable per tile set error and leave the tile set out."""
        outcome = SKIP_OUTCOMES.get(type(error))
        if outcome is None:
            item.state = ItemState.FAILED
        else:
            item.outcome = outcome
            item.state = ItemState.DONE
        item.message = str(error)
        report.warnings.append(str(error))
        self.logger.warning(f"Skipping tile set: {error}")

    def create_bundle(self, job: BundleJob) -> BuildReport:
        """
        Write every tile set image and the metadata, then finalize the bundle.

        Raises:
            BundleBuildError: If any step failed; the bundle has been deleted
            ArchiveFinalizeError: If finalizing failed, no rollback is attempted
        """
        writer = job.writer
        meta_path = self.config.metadata_format.path
        metadata_stale = not writer.is_path_newer_than(meta_path, job.newest_source)

        try:
            staging = self._process_images(job, metadata_stale)
            # Replacements land in one step once every tile set succeeded
            job.bundle.put_all(staging)

            if metadata_stale:
                self._write_metadata(job, meta_path)
            else:
                self.logger.debug(f"Metadata {meta_path} is up to date")
        except Exception as e:
            self.logger.error(f"Failed to create bundle {writer.target}: {e}")
            if not writer.delete():
                self.logger.warning(f"Failed to remove botched bundle '{writer.target}'")
            raise BundleBuildError(f"Failed to create bundle {writer.target}: {e}",
                                   target=str(writer.target)) from e

        writer.close()
        self.logger.info(
            f"Bundled {len(job.bundle)} tile sets into {writer.target} "
            f"({job.report.count(ItemState.TRIMMED)} trimmed, "
            f"{job.report.count(ItemState.SKIPPED_UP_TO_DATE)} up to date)"
        )
        return job.report

    def _process_images(self, job: BundleJob, metadata_stale: bool) -> Dict[int, AnyTileSet]:
        items = {item.tile_set_id: item for item in job.report.items
                 if item.tile_set_id is not None}
        work = [(tile_set_id, tile_set, items[tile_set_id])
                for tile_set_id, tile_set in job.bundle.items()]
        staging: Dict[int, AnyTileSet] = {}

        if self.config.max_workers > 1 and len(work) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
                futures = [executor.submit(self._process_item, job, tile_set, item, metadata_stale)
                           for _, tile_set, item in work]
                try:
                    results = [future.result() for future in futures]
                except Exception:
                    for future in futures:
                        future.cancel()
                    raise
        else:
            results = [self._process_item(job, tile_set, item, metadata_stale)
                       for _, tile_set, item in work]

        for (tile_set_id, _, _), replacement in zip(work, results):
            if replacement is not None:
                staging[tile_set_id] = replacement
        return staging

    def _process_item(self, job: BundleJob, tile_set: TileSet, item: ItemReport,
                      metadata_stale: bool) -> Optional[AnyTileSet]:
        """Bundle the image of one tile set; returns its replacement, if any."""
        try:
            if self.config.trim_images and tile_set.is_object_set:
                replacement = self._trim_item(job, tile_set, item, metadata_stale)
            else:
                replacement = self._copy_item(job, tile_set, item)
        except Exception as e:
            item.state = ItemState.FAILED
            item.message = str(e)
            raise
        item.state = ItemState.DONE
        return replacement

    def _source_time(self, job: BundleJob, image_file: Path) -> float:
        return max(job.newest_source, os.path.getmtime(image_file))

    def _trim_item(self, job: BundleJob, tile_set: ObjectTileSet, item: ItemReport,
                   metadata_stale: bool) -> Optional[AnyTileSet]:
        image_file = job.image_base / tile_set.image_path
        image_path = tile_set.image_path
        if self.config.use_raw_images:
            image_path = ImageUtils.adjust_image_path(image_path)
        item.output_path = image_path

        # A stale manifest needs the trimmed metrics even if the image is current
        if not metadata_stale and job.writer.is_path_newer_than(
                image_path, self._source_time(job, image_file)):
            item.outcome = ItemState.SKIPPED_UP_TO_DATE
            return None

        image = ImageUtils.load_image(image_file)
        trimmed, data = trim_object_tile_set(
            tile_set, image,
            packer=self.config.create_packer(),
            image_format=RAW if self.config.use_raw_images else PNG,
            compress_level=self.config.compression_level,
        )
        trimmed.image_path = image_path

        with job.writer.start_new_file(image_path) as sink:
            sink.write(data)

        item.outcome = ItemState.TRIMMED
        self.logger.info(f"Trimmed '{tile_set.name}' into {image_path}")
        return trimmed

    def _copy_item(self, job: BundleJob, tile_set: TileSet, item: ItemReport) -> Optional[AnyTileSet]:
        image_file = job.image_base / tile_set.image_path
        source_time = self._source_time(job, image_file)
        writer = job.writer

        if self.config.use_raw_images:
            image = ImageUtils.load_image(image_file)
            if ImageUtils.can_write_raw(image):
                image_path = ImageUtils.adjust_image_path(tile_set.image_path)
                item.output_path = image_path
                replacement = None
                if image_path != tile_set.image_path:
                    replacement = replace(tile_set, image_path=image_path)

                if writer.is_path_newer_than(image_path, source_time):
                    item.outcome = ItemState.SKIPPED_UP_TO_DATE
                else:
                    with writer.start_new_file(image_path) as sink:
                        sink.write(ImageUtils.encode_image(image, RAW))
                    item.outcome = ItemState.RE_ENCODED
                    self.logger.debug(f"Re-encoded {image_file} as {image_path}")
                return replacement

        item.output_path = tile_set.image_path
        if writer.is_path_newer_than(tile_set.image_path, source_time):
            item.outcome = ItemState.SKIPPED_UP_TO_DATE
            return None

        with writer.start_new_file(tile_set.image_path) as sink:
            sink.write(image_file.read_bytes())
        item.outcome = ItemState.RAW_COPIED
        self.logger.debug(f"Copied {image_file} into bundle")
        return None

    def _write_metadata(self, job: BundleJob, meta_path: str) -> None:
        data = encode_metadata(job.bundle, self.config.metadata_format)
        try:
            with job.writer.start_new_file(meta_path) as sink:
                sink.write(data)
        except WriteError as e:
            raise MetadataWriteError(f"Failed to write {meta_path}: {e}") from e
        job.report.metadata_written = True
        self.logger.debug(f"Wrote {len(data)} bytes of metadata to {meta_path}")
