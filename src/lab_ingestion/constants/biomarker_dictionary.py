# ============================================================================
# src/lab_ingestion/constants/biomarker_dictionary.py
# ============================================================================
"""
Biomarker Dictionary Lookup.

Static catalog of known biomarkers (canonical name, aliases, canonical
and accepted units, default reference range). Loaded once from
knowledge/biomarker_dictionary.json and treated as read-only.

Name lookup is case-insensitive over names and aliases. When two entries
share an alias ("Glucose" is also an alias of Urine Glucose) the entry
listed first in the file wins.
"""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from ..config import base_settings
from ..units.normalizer import unit_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DefaultReferenceRange:
    low: Optional[float]
    high: Optional[float]
    unit: str


@dataclass(frozen=True)
class BiomarkerDefinition:
    name: str
    aliases: Tuple[str, ...]
    category: str
    canonical_unit: str
    alternative_units: Tuple[str, ...] = ()
    default_reference_range: Optional[DefaultReferenceRange] = None
    description: str = ""
    high_indication: Optional[str] = None
    low_indication: Optional[str] = None

    @property
    def accepted_units(self) -> Tuple[str, ...]:
        """Canonical unit first (empty for unitless analytes like pH), then alternatives."""
        return (self.canonical_unit,) + tuple(u for u in self.alternative_units if u)

    @classmethod
    def from_dict(cls, data: Dict) -> "BiomarkerDefinition":
        raw_range = data.get('default_reference_range')
        reference_range = None
        if raw_range:
            reference_range = DefaultReferenceRange(
                low=raw_range.get('low'),
                high=raw_range.get('high'),
                unit=raw_range.get('unit', data.get('canonical_unit', '')),
            )
        return cls(
            name=data['name'],
            aliases=tuple(data.get('aliases', [])),
            category=data.get('category', 'other'),
            canonical_unit=data.get('canonical_unit', ''),
            alternative_units=tuple(data.get('alternative_units', [])),
            default_reference_range=reference_range,
            description=data.get('description', ''),
            high_indication=data.get('high_indication'),
            low_indication=data.get('low_indication'),
        )


class BiomarkerDictionary:
    """
    Read-only lookup service over biomarker definitions.

    Usage:
        dictionary = get_biomarker_dictionary()
        definition = dictionary.find("hgb")
    """

    def __init__(self, definitions: List[BiomarkerDefinition]):
        self._definitions = list(definitions)
        self._index: Dict[str, BiomarkerDefinition] = {}

        for definition in self._definitions:
            for name in (definition.name, *definition.aliases):
                key = name.strip().lower()
                if key in self._index and self._index[key] is not definition:
                    logger.debug(
                        f"Dictionary alias '{name}' shadowed by {self._index[key].name}"
                    )
                    continue
                self._index[key] = definition

    @classmethod
    def from_file(cls, path: Path) -> "BiomarkerDictionary":
        with open(path, encoding='utf-8') as f:
            raw = json.load(f)
        dictionary = cls([BiomarkerDefinition.from_dict(item) for item in raw])
        logger.info(f"Loaded {len(dictionary)} biomarker definitions from {path.name}")
        return dictionary

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[BiomarkerDefinition]:
        return iter(self._definitions)

    def find(self, name: str) -> Optional[BiomarkerDefinition]:
        """Exact, case-insensitive lookup on name or alias."""
        if not name:
            return None
        return self._index.get(name.strip().lower())

    def search(self, query: str) -> List[BiomarkerDefinition]:
        """Definitions whose name or an alias contains the query."""
        query = (query or '').strip().lower()
        if not query:
            return []
        return [
            d for d in self._definitions
            if query in d.name.lower() or any(query in a.lower() for a in d.aliases)
        ]

    def by_category(self, category: str) -> List[BiomarkerDefinition]:
        return [d for d in self._definitions if d.category == category]

    def categories(self) -> List[str]:
        seen = []
        for d in self._definitions:
            if d.category not in seen:
                seen.append(d.category)
        return seen

    def canonical_unit(self, name: str) -> Optional[str]:
        definition = self.find(name)
        return definition.canonical_unit if definition else None

    def is_valid_unit(self, name: str, unit: str) -> bool:
        """Whether the unit is the canonical or an accepted alternative unit."""
        definition = self.find(name)
        if definition is None:
            return False
        key = unit_key(unit)
        return any(unit_key(u) == key for u in definition.accepted_units)


@lru_cache(maxsize=1)
def get_biomarker_dictionary() -> BiomarkerDictionary:
    """Process-wide dictionary loaded from the knowledge base."""
    return BiomarkerDictionary.from_file(base_settings.get_dictionary_path())
