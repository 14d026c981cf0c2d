"""Visit identity passed to erasure and export calls."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class VisitKey:
    """One (idsite, idvisit) pair identifying a data subject's visit."""

    site_id: int
    visit_id: int

    @classmethod
    def parse(cls, value: str) -> VisitKey:
        """Parse a ``SITE:VISIT`` string.

        Raises:
            ValueError: If the value is not two colon-separated integers
        """
        site, sep, visit = value.strip().partition(":")
        if not sep:
            raise ValueError(f"Visit must be given as SITE:VISIT, got {value!r}")
        try:
            return cls(site_id=int(site), visit_id=int(visit))
        except ValueError:
            raise ValueError(f"Visit must be given as SITE:VISIT integers, got {value!r}") from None
