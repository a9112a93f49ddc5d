"""Import resolution: turns a document's DBML/OpenAPI references into schema facts."""

from __future__ import annotations

import logging
from pathlib import Path

from usml.models.document import UsmlDocument
from usml.models.errors import Diagnostic
from usml.models.schema import DbmlTable, OpenapiResponse, ResolvedSchema
from usml.parser.dbml import resolve_dbml
from usml.parser.errors import ReferenceNotFoundError, ResolverError
from usml.parser.openapi import resolve_openapi
from usml.parser.references import parse_dbml_ref, parse_openapi_ref

logger = logging.getLogger("usml.resolver")

RULE_RESOLVE_OPENAPI = "resolve.openapi"
RULE_RESOLVE_DBML = "resolve.dbml"


class ReferenceResolver:
    """Resolves the ``import`` section of a USML document.

    Resolution never raises: every failure becomes one warning diagnostic and
    the corresponding facts are simply left out of the ``ResolvedSchema``.
    """

    def resolve(
        self,
        doc: UsmlDocument,
        base_dir: str | Path,
    ) -> tuple[ResolvedSchema, list[Diagnostic]]:
        """Resolve every import reference relative to ``base_dir``.

        Returns (schema, warnings).
        """
        base = Path(base_dir)
        schema = ResolvedSchema()
        warnings: list[Diagnostic] = []

        schema.openapi = self._resolve_openapi(doc, base, warnings)
        self._resolve_dbml(doc, base, schema, warnings)

        logger.debug(
            "Resolved imports (openapi=%s, tables=%s, warnings=%d)",
            schema.has_openapi,
            [t.name for t in schema.dbml_tables],
            len(warnings),
        )
        return schema, warnings

    def _resolve_openapi(
        self,
        doc: UsmlDocument,
        base: Path,
        warnings: list[Diagnostic],
    ) -> OpenapiResponse | None:
        reference = doc.import_.openapi
        if not reference:
            return None
        parsed = parse_openapi_ref(reference)
        if parsed is None:
            logger.debug("Skipping unrecognised OpenAPI reference %r", reference)
            return None

        file_path = base / parsed.path
        try:
            return resolve_openapi(file_path, parsed.api_path, parsed.method, parsed.status_code)
        except ResolverError as exc:
            logger.warning("OpenAPI resolution failed for %r: %s", reference, exc)
            warnings.append(
                Diagnostic.warning(
                    RULE_RESOLVE_OPENAPI,
                    f"OpenAPI reference '{reference}' could not be resolved: {exc}",
                    path="import.openapi",
                )
            )
            return None

    def _resolve_dbml(
        self,
        doc: UsmlDocument,
        base: Path,
        schema: ResolvedSchema,
        warnings: list[Diagnostic],
    ) -> None:
        # Each file is parsed at most once; failures are cached too so that a
        # broken file is reported a single time.
        parsed_files: dict[Path, list[DbmlTable] | None] = {}

        for i, reference in enumerate(doc.import_.dbml):
            parsed = parse_dbml_ref(reference)
            if parsed is None:
                logger.debug("Skipping unrecognised DBML reference %r", reference)
                continue

            file_path = base / parsed.path
            if file_path not in parsed_files:
                try:
                    parsed_files[file_path] = resolve_dbml(file_path)
                except ResolverError as exc:
                    logger.warning("DBML resolution failed for %s: %s", file_path, exc)
                    parsed_files[file_path] = None
                    warnings.append(
                        Diagnostic.warning(
                            RULE_RESOLVE_DBML,
                            f"DBML reference '{reference}' could not be resolved: {exc}",
                            path=f"import.dbml[{i}]",
                        )
                    )
            tables = parsed_files[file_path]
            if tables is None:
                continue

            table = next((t for t in tables if t.name == parsed.table), None)
            if table is None:
                exc = ReferenceNotFoundError(f"table {parsed.table} not found in {parsed.path}")
                logger.warning("DBML resolution failed for %r: %s", reference, exc)
                warnings.append(
                    Diagnostic.warning(
                        RULE_RESOLVE_DBML,
                        f"DBML reference '{reference}' could not be resolved: {exc}",
                        path=f"import.dbml[{i}]",
                    )
                )
                continue
            schema.add_table(table)
