"""
Identifier parsing and resolution.

Input identifiers arrive as DOIs, PMIDs or Semantic Scholar paper IDs,
with or without scheme prefixes. Parsing is purely syntactic; resolution
asks the provider for the canonical Semantic Scholar ID.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

from .errors import (
    InvalidRequestError,
    ProviderError,
    ResolutionError,
    ResolutionErrorKind,
)
from .models import Identifier, IdScheme, PaperInfo

logger = logging.getLogger("snowball-citation-server")

_DOI_URL_PREFIXES = (
    "https://doi.org/",
    "http://doi.org/",
    "https://dx.doi.org/",
    "http://dx.doi.org/",
)
_S2_ID_RE = re.compile(r"^[0-9a-fA-F]{40}$")


class ResolvingProvider(Protocol):
    async def resolve(self, identifier: Identifier) -> list[PaperInfo]: ...


def is_valid_doi(value: str) -> bool:
    """
    Check DOI syntax.

    DOIs start with "10." followed by a registrant code of at least
    four digits, a "/" and a suffix.
    """
    if not value.startswith("10.") or len(value) <= 7 or "/" not in value:
        return False
    registrant = re.match(r"\d*", value[3:]).group(0)
    return len(registrant) >= 4


def is_valid_pmid(value: str) -> bool:
    """PMIDs are purely numeric."""
    return value.isascii() and value.isdigit()


def is_valid_s2_id(value: str) -> bool:
    """Semantic Scholar paper IDs are 40-character hex digests."""
    return bool(_S2_ID_RE.match(value))


def _strip_prefix(value: str, prefix: str) -> Optional[str]:
    if value.lower().startswith(prefix):
        return value[len(prefix):].strip()
    return None


def parse_identifier(raw: str) -> Identifier:
    """
    Detect the scheme of a raw identifier.

    Handles:
    - DOI: '10.1016/j.cell.2020.01.040', 'doi:10.1016/...', 'https://doi.org/10.1016/...'
    - PMID: '31978945' or 'pmid:31978945'
    - Semantic Scholar ID (40-char hex), optionally prefixed with 's2:'

    Raises:
        InvalidRequestError: If the identifier matches none of the schemes.
    """
    value = raw.strip()

    for url_prefix in _DOI_URL_PREFIXES:
        stripped = _strip_prefix(value, url_prefix)
        if stripped is not None:
            value = stripped
            break

    doi = _strip_prefix(value, "doi:")
    if doi is not None:
        if is_valid_doi(doi):
            return Identifier(raw=raw, scheme=IdScheme.DOI, value=doi)
        raise InvalidRequestError(f"Invalid identifier format: '{raw}' is not a valid DOI")

    pmid = _strip_prefix(value, "pmid:")
    if pmid is not None:
        if is_valid_pmid(pmid):
            return Identifier(raw=raw, scheme=IdScheme.PMID, value=pmid)
        raise InvalidRequestError(f"Invalid identifier format: '{raw}' is not a valid PMID")

    s2_id = _strip_prefix(value, "s2:")
    if s2_id is not None:
        value = s2_id

    if is_valid_doi(value):
        return Identifier(raw=raw, scheme=IdScheme.DOI, value=value)
    if is_valid_s2_id(value):
        return Identifier(raw=raw, scheme=IdScheme.S2, value=value.lower())
    if is_valid_pmid(value):
        return Identifier(raw=raw, scheme=IdScheme.PMID, value=value)

    raise InvalidRequestError(
        f"Invalid identifier format: '{raw}' is neither a DOI, a PMID "
        f"nor a Semantic Scholar paper ID"
    )


class IdentifierNormalizer:
    """Maps parsed identifiers onto canonical Semantic Scholar IDs."""

    def __init__(self, provider: ResolvingProvider):
        self.provider = provider

    async def normalize(
        self,
        identifier: Identifier,
    ) -> tuple[str, Optional[PaperInfo]]:
        """
        Resolve one identifier.

        Canonical identifiers are returned as-is without a provider call.
        Otherwise the provider is queried and must return exactly one
        distinct paper.

        Returns:
            (canonical_id, metadata) - metadata is None when no lookup was made.

        Raises:
            ResolutionError: NOT_FOUND, AMBIGUOUS or TRANSPORT.
            ProviderError: Only for unrecoverable provider configuration errors.
        """
        if identifier.is_canonical:
            return identifier.value, None

        try:
            candidates = await self.provider.resolve(identifier)
        except ProviderError as e:
            if not e.recoverable:
                raise
            raise ResolutionError(
                identifier.raw,
                ResolutionErrorKind.TRANSPORT,
                f"Provider failure while resolving '{identifier.raw}': {e}",
            ) from e

        distinct = {paper.paper_id: paper for paper in candidates}
        if not distinct:
            raise ResolutionError(identifier.raw, ResolutionErrorKind.NOT_FOUND)
        if len(distinct) > 1:
            raise ResolutionError(
                identifier.raw,
                ResolutionErrorKind.AMBIGUOUS,
                f"'{identifier.raw}' matches {len(distinct)} records: "
                f"{', '.join(sorted(distinct))}",
            )

        paper = next(iter(distinct.values()))
        logger.debug(f"Resolved {identifier.raw} -> {paper.paper_id}")
        return paper.paper_id, paper
