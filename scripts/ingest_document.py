"""Document ingestion entrypoint.

This script reads an extracted text file, chunks it, selects the chunks most
relevant to the document's opening, and writes the document to the configured
document store.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from passage_rag.app.container import build_container
from passage_rag.common.logging_utils import configure_logging
from passage_rag.config import GlobalConfig


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest a text document into the document store")

    parser.add_argument(
        "path",
        type=str,
        help="Path to a UTF-8 text file holding the extracted document text.",
    )

    parser.add_argument(
        "--config-file",
        "-c",
        required=True,
        type=str,
        help="Path to the YAML configuration file.",
    )

    parser.add_argument(
        "--title",
        "-t",
        required=False,
        type=str,
        default=None,
        help="Document title (defaults to the file name).",
    )

    parser.add_argument(
        "--file-type",
        required=False,
        type=str,
        default="text/plain",
        help="MIME type recorded for the document (default: text/plain).",
    )

    parser.add_argument(
        "--persist",
        "-p",
        action="store_true",
        help="If set, persist the document store to storage.persist_path after ingestion.",
    )

    return parser.parse_args()


def main() -> None:
    args = parse_args()

    cfg = GlobalConfig.load(args.config_file)
    configure_logging(cfg.logging)
    container = build_container(cfg)

    path = Path(args.path)
    text = path.read_text(encoding="utf-8")
    title = args.title or path.name

    print(f"Ingesting {title} ({len(text)} characters)...")
    result = container.ingestion_pipeline.ingest(text, title=title, file_type=args.file_type)

    mode = "fallback" if result.relevant.degraded else "ranked"
    print(
        f"Stored document {result.document_id}: "
        f"{len(result.chunks)} chunks, {len(result.relevant)} relevant ({mode})"
    )

    if args.persist:
        print("Persisting document store...")
        container.document_store.persist()

    print(result.context)
    print("Ingestion complete!")


if __name__ == "__main__":
    main()
