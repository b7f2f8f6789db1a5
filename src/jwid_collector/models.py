"""Query and work-record types shared by the engine, the job sink and the export."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any


__all__ = [
    'AdvertisementPermissions',
    'GamePermissions',
    'PerformancePermissions',
    'Query',
    'ReproductionPermissions',
    'RightsHolder',
    'TransmissionPermissions',
    'UsagePermissions',
    'WorkRecord',
]


@dataclass(frozen=True)
class Query:
    """One song to look up. Only ``title`` is mandatory."""

    title: str
    artist: str | None = None
    composer: str | None = None
    lyricist: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Query:
        def _opt(key: str) -> str | None:
            value = data.get(key)
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        return cls(
            title=str(data.get('title') or '').strip(),
            artist=_opt('artist'),
            composer=_opt('composer'),
            lyricist=_opt('lyricist'),
        )

    def to_dict(self) -> dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v}


@dataclass(frozen=True)
class RightsHolder:
    name: str
    role: str
    share: str = ''
    society: str = ''

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RightsHolder:
        return cls(
            name=data.get('name', ''),
            role=data.get('role', ''),
            share=data.get('shares', ''),
            society=data.get('society', ''),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            'name': self.name,
            'role': self.role,
            'shares': self.share,
            'society': self.society,
        }


# ── Usage permissions: one flag per registry licensing category ──


@dataclass
class PerformancePermissions:
    concert: bool = False
    bgm: bool = False
    karaoke: bool = False


@dataclass
class ReproductionPermissions:
    recording: bool = False
    publication: bool = False
    rental: bool = False
    video: bool = False
    movie: bool = False


@dataclass
class TransmissionPermissions:
    broadcast: bool = False
    distribution: bool = False
    karaoke_comm: bool = False


@dataclass
class AdvertisementPermissions:
    cm: bool = False
    movie_ad: bool = False
    recording_ad: bool = False
    video_ad: bool = False
    publication_ad: bool = False


@dataclass
class GamePermissions:
    recording_game: bool = False
    video_game: bool = False


_CATEGORIES: dict[str, type] = {
    'performance': PerformancePermissions,
    'reproduction': ReproductionPermissions,
    'transmission': TransmissionPermissions,
    'advertisement': AdvertisementPermissions,
    'game': GamePermissions,
}


@dataclass
class UsagePermissions:
    """Which usage categories the registry manages for a work.

    A flag is true only when the detail page says so explicitly.
    ``management_details`` holds the raw per-tab table text keyed by the
    registry's category label, whatever the flag outcome.
    """

    performance: PerformancePermissions = field(default_factory=PerformancePermissions)
    reproduction: ReproductionPermissions = field(default_factory=ReproductionPermissions)
    transmission: TransmissionPermissions = field(default_factory=TransmissionPermissions)
    advertisement: AdvertisementPermissions = field(
        default_factory=AdvertisementPermissions
    )
    game: GamePermissions = field(default_factory=GamePermissions)
    management_details: dict[str, str] = field(default_factory=dict)

    def set_flag(self, category: str, flag: str, permitted: bool) -> None:
        group = getattr(self, category)
        if not hasattr(group, flag):
            raise AttributeError(f'unknown usage flag {category}.{flag}')
        setattr(group, flag, permitted)

    def flag(self, category: str, flag: str) -> bool:
        return bool(getattr(getattr(self, category), flag))

    def granted(self) -> list[tuple[str, str]]:
        """Return ``(category, flag)`` pairs that are true, in schema order."""
        result: list[tuple[str, str]] = []
        for category in _CATEGORIES:
            group = getattr(self, category)
            result.extend((category, f.name) for f in fields(group) if getattr(group, f.name))
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UsagePermissions:
        perms = cls(management_details=dict(data.get('managementDetails') or {}))
        for category, group_cls in _CATEGORIES.items():
            raw = data.get(category) or {}
            known = {f.name for f in fields(group_cls)}
            setattr(
                perms,
                category,
                group_cls(**{k: bool(v) for k, v in raw.items() if k in known}),
            )
        return perms

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {c: asdict(getattr(self, c)) for c in _CATEGORIES}
        data['managementDetails'] = dict(self.management_details)
        return data


# Python attribute -> key in the JSON result artifact
_SCALAR_KEYS = {
    'work_code': 'workCode',
    'title': 'title',
    'lyricist': 'lyricist',
    'composer': 'composer',
    'arranger': 'arranger',
    'artist': 'artist',
    'duration': 'duration',
    'work_type': 'workType',
    'nationality': 'nationality',
    'creation_date': 'creationDate',
    'source_type': 'sourceType',
    'publisher': 'publisher',
    'usage_category': 'usageCategory',
    'raw_html': 'rawHtml',
}


@dataclass
class WorkRecord:
    """One registered composition scraped from a detail page."""

    work_code: str
    title: str
    lyricist: str = ''
    composer: str = ''
    arranger: str = ''
    artist: str = ''
    duration: str = ''
    work_type: str = ''
    nationality: str = ''
    creation_date: str = ''
    source_type: str = ''
    publisher: str = ''
    usage_category: str = ''
    rights: list[RightsHolder] = field(default_factory=list)
    usage_permissions: UsagePermissions = field(default_factory=UsagePermissions)
    raw_html: str = ''
    alternatives: list[WorkRecord] = field(default_factory=list)

    @property
    def export_code(self) -> str:
        """Work code as the export expects it: hyphens stripped."""
        return self.work_code.replace('-', '')

    def add_alternative(self, other: WorkRecord) -> bool:
        """Append *other* unless it shares a work code with self or a sibling.

        Records without a work code are never treated as duplicates.
        """
        if other is self:
            return False
        code = other.work_code
        if code and (
            code == self.work_code or any(a.work_code == code for a in self.alternatives)
        ):
            return False
        self.alternatives.append(other)
        return True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkRecord:
        kwargs: dict[str, Any] = {
            attr: str(data.get(key) or '') for attr, key in _SCALAR_KEYS.items()
        }
        record = cls(
            **kwargs,
            rights=[RightsHolder.from_dict(r) for r in data.get('rightsInfo') or []],
            usage_permissions=UsagePermissions.from_dict(data.get('usagePermissions') or {}),
        )
        for alt in data.get('alternatives') or []:
            record.add_alternative(cls.from_dict(alt))
        return record

    def to_dict(self, include_html: bool = True) -> dict[str, Any]:
        data: dict[str, Any] = {key: getattr(self, attr) for attr, key in _SCALAR_KEYS.items()}
        if not include_html:
            data.pop('rawHtml')
        data['rightsInfo'] = [r.to_dict() for r in self.rights]
        data['usagePermissions'] = self.usage_permissions.to_dict()
        data['alternatives'] = [a.to_dict(include_html) for a in self.alternatives]
        return data
