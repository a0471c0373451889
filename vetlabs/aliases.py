"""Canonical parameter codes and the multilingual alias table that maps labels onto them."""

import logging
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from vetlabs.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Canonical parameter codes, in anchor precedence order
CANONICAL_CODES = (
    # Hematology
    "RBC",
    "WBC",
    "HGB",
    "HCT",
    "MCV",
    "MCH",
    "MCHC",
    "RDW",
    "PLT",
    "NEU",
    "BAND",
    "EOS",
    "LYM",
    "MONO",
    "RETIC",
    # Chemistry
    "ALT",
    "AST",
    "CREA",
    "BUN",
    "ALP",
    "TBIL",
    "DBIL",
    # Serology (qualitative)
    "HW",
    "FIV",
    "FELV",
    "BPAR",
)

# Legacy codes still printed by older analyzers; always folded into a canonical code
LEGACY_CODES = {
    "SGPT": "ALT",
    "SGOT": "AST",
}

# Alternative labels (English and Thai). Keys are lowercased.
DEFAULT_ALIASES = {
    # RBC - Red Blood Cells
    "rbc": "RBC",
    "red blood cell": "RBC",
    "red blood cells": "RBC",
    "erythrocyte": "RBC",
    "erythrocytes": "RBC",
    "เม็ดเลือดแดง": "RBC",
    # WBC - White Blood Cells
    "wbc": "WBC",
    "white blood cell": "WBC",
    "white blood cells": "WBC",
    "leukocyte": "WBC",
    "leukocytes": "WBC",
    "เม็ดเลือดขาว": "WBC",
    # HGB - Hemoglobin
    "hgb": "HGB",
    "hb": "HGB",
    "hemoglobin": "HGB",
    "haemoglobin": "HGB",
    "ฮีโมโกลบิน": "HGB",
    # HCT - Hematocrit
    "hct": "HCT",
    "hematocrit": "HCT",
    "haematocrit": "HCT",
    "pcv": "HCT",
    "packed cell volume": "HCT",
    "ฮีมาโตคริต": "HCT",
    # MCV - Mean Corpuscular Volume
    "mcv": "MCV",
    "mean corpuscular volume": "MCV",
    # MCH - Mean Corpuscular Hemoglobin
    "mch": "MCH",
    "mean corpuscular hemoglobin": "MCH",
    "mean corpuscular haemoglobin": "MCH",
    # MCHC - Mean Corpuscular Hemoglobin Concentration
    "mchc": "MCHC",
    "mean corpuscular hemoglobin concentration": "MCHC",
    # RDW - Red Cell Distribution Width
    "rdw": "RDW",
    "red cell distribution width": "RDW",
    "rdw-cv": "RDW",
    # PLT - Platelets
    "plt": "PLT",
    "platelet": "PLT",
    "platelets": "PLT",
    "thrombocyte": "PLT",
    "thrombocytes": "PLT",
    "เกล็ดเลือด": "PLT",
    # NEU - Neutrophils
    "neu": "NEU",
    "neut": "NEU",
    "neutrophil": "NEU",
    "neutrophils": "NEU",
    "นิวโทรฟิล": "NEU",
    # BAND - Band Neutrophils
    "band": "BAND",
    "band neutrophil": "BAND",
    "band neutrophils": "BAND",
    "bands": "BAND",
    # EOS - Eosinophils
    "eos": "EOS",
    "eosinophil": "EOS",
    "eosinophils": "EOS",
    "อีโอซิโนฟิล": "EOS",
    # LYM - Lymphocytes
    "lym": "LYM",
    "lymph": "LYM",
    "lymphocyte": "LYM",
    "lymphocytes": "LYM",
    "ลิมโฟไซต์": "LYM",
    # MONO - Monocytes
    "mono": "MONO",
    "monocyte": "MONO",
    "monocytes": "MONO",
    "โมโนไซต์": "MONO",
    # RETIC - Reticulocytes
    "retic": "RETIC",
    "reticulocyte": "RETIC",
    "reticulocytes": "RETIC",
    "retic count": "RETIC",
    # ALT - Alanine Aminotransferase
    "alt": "ALT",
    "alanine aminotransferase": "ALT",
    "alanine transaminase": "ALT",
    "sgpt": "ALT",
    # AST - Aspartate Aminotransferase
    "ast": "AST",
    "aspartate aminotransferase": "AST",
    "aspartate transaminase": "AST",
    "sgot": "AST",
    # CREA - Creatinine
    "crea": "CREA",
    "creatinine": "CREA",
    "ครีเอทินิน": "CREA",
    # BUN - Blood Urea Nitrogen
    "bun": "BUN",
    "blood urea nitrogen": "BUN",
    "urea": "BUN",
    "ยูเรีย": "BUN",
    # ALP - Alkaline Phosphatase
    "alp": "ALP",
    "alkaline phosphatase": "ALP",
    "alkp": "ALP",
    "alk phos": "ALP",
    # TBIL - Total Bilirubin
    "tbil": "TBIL",
    "total bilirubin": "TBIL",
    "t.bil": "TBIL",
    "t-bil": "TBIL",
    "บิลิรูบินรวม": "TBIL",
    # DBIL - Direct Bilirubin
    "dbil": "DBIL",
    "direct bilirubin": "DBIL",
    "d.bil": "DBIL",
    "d-bil": "DBIL",
    "conjugated bilirubin": "DBIL",
    # HW - Heartworm antigen
    "heartworm": "HW",
    "heartworm ag": "HW",
    "heartworm antigen": "HW",
    "dirofilaria": "HW",
    "dirofilaria immitis": "HW",
    "พยาธิหนอนหัวใจ": "HW",
    # FIV - Feline Immunodeficiency Virus
    "fiv ab": "FIV",
    "feline immunodeficiency virus": "FIV",
    # FELV - Feline Leukemia Virus
    "felv ag": "FELV",
    "feline leukemia virus": "FELV",
    "feline leukaemia virus": "FELV",
    # BPAR - Blood parasites
    "blood parasite": "BPAR",
    "blood parasites": "BPAR",
    "hemoparasite": "BPAR",
    "hemoparasites": "BPAR",
    "พยาธิในเม็ดเลือด": "BPAR",
}


def _normalize_label(text: str) -> str:
    """Trim and collapse internal whitespace so OCR spacing does not break lookups."""
    return " ".join(text.split())


class AliasTable:
    """Immutable lookup from codes and aliases to canonical parameter codes.

    Built once and passed to the extractor and the structured merge.
    """

    def __init__(
        self,
        canonical_codes: Iterable[str],
        aliases: Mapping[str, str],
        legacy_codes: Optional[Mapping[str, str]] = None,
    ):
        """Validate and freeze the vocabulary.

        Args:
            canonical_codes: The fixed set of canonical codes, in anchor precedence order
            aliases: Alias text -> canonical (or legacy) code
            legacy_codes: Legacy code -> canonical code

        Raises:
            ConfigurationError: If a code or alias is empty, duplicated, or points nowhere
        """
        codes = []
        for code in canonical_codes:
            normalized = _normalize_label(code).upper() if isinstance(code, str) else ""
            if not normalized:
                raise ConfigurationError("Canonical codes must be non-empty strings")
            if normalized in codes:
                raise ConfigurationError(f"Duplicate canonical code '{normalized}'")
            codes.append(normalized)
        self._codes = tuple(codes)

        legacy = {}
        for old_code, target in (legacy_codes or {}).items():
            old_normalized = _normalize_label(old_code).upper()
            target_normalized = _normalize_label(target).upper()
            if not old_normalized:
                raise ConfigurationError("Legacy codes must be non-empty strings")
            if old_normalized in self._codes:
                raise ConfigurationError(f"Legacy code '{old_normalized}' collides with a canonical code")
            if target_normalized not in self._codes:
                raise ConfigurationError(f"Legacy code '{old_normalized}' maps to unknown code '{target_normalized}'")
            legacy[old_normalized] = target_normalized
        self._legacy = MappingProxyType(legacy)

        alias_map = {}
        for alias, target in aliases.items():
            alias_normalized = _normalize_label(alias).lower() if isinstance(alias, str) else ""
            if not alias_normalized:
                raise ConfigurationError("Aliases must be non-empty strings")
            code = self.fold(target)
            if code is None:
                raise ConfigurationError(f"Alias '{alias_normalized}' maps to unknown code '{target}'")
            alias_map[alias_normalized] = code
        self._aliases = MappingProxyType(alias_map)

        logger.debug(f"Alias table built: {len(self._codes)} codes, {len(self._legacy)} legacy, {len(self._aliases)} aliases")

    @property
    def codes(self) -> tuple[str, ...]:
        """Canonical codes in precedence order."""
        return self._codes

    @property
    def legacy_codes(self) -> Mapping[str, str]:
        """Read-only legacy code -> canonical code mapping."""
        return self._legacy

    @property
    def aliases(self) -> Mapping[str, str]:
        """Read-only alias -> canonical code mapping (lowercased keys)."""
        return self._aliases

    def is_code(self, text: str) -> bool:
        """Whether text is a canonical or legacy code (case-insensitive)."""
        if not isinstance(text, str):
            return False
        upper = _normalize_label(text).upper()
        return upper in self._codes or upper in self._legacy

    def fold(self, code: str) -> Optional[str]:
        """Map a canonical or legacy code onto its canonical code, else None."""
        if not isinstance(code, str):
            return None
        upper = _normalize_label(code).upper()
        if upper in self._codes:
            return upper
        return self._legacy.get(upper)

    def resolve(self, text: str) -> Optional[str]:
        """Normalize any label (code, legacy code or alias) to a canonical code.

        Returns None if the text does not match any known parameter.
        """
        if not isinstance(text, str):
            return None

        label = _normalize_label(text)
        if not label:
            return None

        # Already a code (SGPT -> ALT, SGOT -> AST)
        code = self.fold(label)
        if code is not None:
            return code

        return self._aliases.get(label.lower())

    def with_aliases(self, extra: Mapping[str, str]) -> "AliasTable":
        """Return a new table with additional aliases layered on top."""
        merged = dict(self._aliases)
        merged.update(extra)
        return AliasTable(self._codes, merged, self._legacy)


@lru_cache(maxsize=None)
def default_alias_table() -> AliasTable:
    """The built-in English/Thai vocabulary, built once per process."""
    return AliasTable(CANONICAL_CODES, DEFAULT_ALIASES, LEGACY_CODES)
