"""HERE Resource Names: ``hrn:<partition>:<service>:<region>:<account>:<resource>``."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

_ENTRIES_COUNT = 6


@dataclass(frozen=True)
class HRN:
    partition: str
    service: str
    resource: str
    region: str = ''
    account: str = ''

    @classmethod
    def from_string(cls, value: str) -> HRN:
        """Parse an HRN string.

        ``http:`` / ``https:`` URLs are accepted as ``catalog-url`` HRNs for
        catalogs served from a local address.
        """
        if value.startswith(('http:', 'https:')):
            return cls(
                partition='catalog-url',
                service='datastore',
                resource=quote(value, safe=''),
            )

        entries = value.split(':')
        if len(entries) < _ENTRIES_COUNT or entries[0] != 'hrn':
            msg = f'Invalid HRN: {value!r}'
            raise ValueError(msg)
        return cls(
            partition=entries[1],
            service=entries[2],
            region=entries[3],
            account=entries[4],
            # Resource may itself contain colons
            resource=':'.join(entries[5:]),
        )

    def __str__(self) -> str:
        return (
            f'hrn:{self.partition}:{self.service}:{self.region}:'
            f'{self.account}:{self.resource}'
        )
