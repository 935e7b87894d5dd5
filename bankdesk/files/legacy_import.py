"""
Import ID pictures left on local disk by older deployments into the blob store.

Files must follow the ``{ownerId}-{epochMillis}.ext`` naming; anything else is
skipped. Run with ``python -m bankdesk.files.legacy_import <directory>``.
"""
import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

from sqlalchemy.orm import Session

from bankdesk.auth.models import User
from bankdesk.files.models import FileType
from bankdesk.files.naming import extension_of, parse_owner_id
from bankdesk.files.service import FileService
from bankdesk.shared.errors import AppError

logger = logging.getLogger(__name__)

_JPEG_EXTS = {".jpg", ".jpeg"}


@dataclass
class ImportReport:
    migrated: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def summary(self) -> str:
        return f"migrated={len(self.migrated)} skipped={len(self.skipped)} errors={len(self.errors)}"


def import_directory(db: Session, files: FileService, directory: Path) -> ImportReport:
    report = ImportReport()
    if not directory.is_dir():
        logger.info("no legacy upload directory at %s, nothing to import", directory)
        return report

    for path in sorted(directory.iterdir()):
        name = path.name
        if not path.is_file():
            report.skipped.append(name)
            continue
        if files.file_exists(db, name):
            logger.info("skipping %s: already stored", name)
            report.skipped.append(name)
            continue
        owner_id = parse_owner_id(name)
        if owner_id is None:
            logger.warning("skipping %s: invalid filename format", name)
            report.skipped.append(name)
            continue
        user = db.get(User, owner_id)
        if not user:
            logger.warning("skipping %s: user %s not found", name, owner_id)
            report.skipped.append(name)
            continue

        content_type = "image/jpeg" if extension_of(name) in _JPEG_EXTS else "application/octet-stream"
        try:
            files.store_file(
                db,
                path.read_bytes(),
                filename=name,
                original_name=name,
                content_type=content_type,
                uploaded_by=owner_id,
                file_type=FileType.ID_PICTURE,
            )
        except (AppError, OSError) as e:
            logger.error("failed to import %s: %s", name, e)
            report.errors.append(name)
            continue

        # older rows stored a path ending in the filename; point them at the stored name
        if user.id_picture_path and user.id_picture_path != name and user.id_picture_path.endswith(name):
            user.id_picture_path = name
            db.commit()
        report.migrated.append(name)
        logger.info("imported %s for user %s", name, owner_id)

    logger.info("legacy import finished: %s", report.summary())
    return report


def main(argv: list[str] | None = None) -> int:
    from bankdesk.shared.db import Base, SessionLocal, engine
    from bankdesk.shared.logs import configure_logging
    from bankdesk.files.service import get_file_service

    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("directory", type=Path, help="directory holding legacy id pictures")
    args = parser.parse_args(argv)

    configure_logging()
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        report = import_directory(db, get_file_service(), args.directory)
    print(report.summary())
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
