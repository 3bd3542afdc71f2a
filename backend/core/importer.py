"""
importer.py — Bulk student import and export in the school's CSV layout.

File layout (';'-separated, UTF-8 or Windows-1252):
  PrimerApellido;SegundoApellido;PrimerNombre;SegundoNombre;NombreDelGrado
One student per line after the header. A trailer line starting with the
sentinel token (DESPEDIDA by default) is ignored.

Pipeline:
- Decode (UTF-8, falling back to Windows-1252 when replacement chars appear;
  UTF-16 only with a BOM; control characters refused)
- Split fields, honouring double-quoted fields as written by the export
- Assemble full names (first names, then last names)
- Resolve grade names against known grade levels (accent/case/degree-insensitive)
- Deduplicate on (lowercased full name, grade level) against the database
  and within the file itself
- One bulk insert; counts reported back instead of per-row errors
"""

import codecs
import csv
import logging
import re
import unicodedata
from typing import Dict, List, Optional, Sequence

import pandas as pd
from pydantic import BaseModel, Field

from core.config import (
    IMPORT_FALLBACK_ENCODING,
    IMPORT_TRAILER_SENTINEL,
    IMPORT_UNRESOLVED_EXAMPLES,
)
from core.errors import DecodeError, NotFoundError, ValidationError
from core.models import GradeLevel, Student
from core.store import RecordStore

logger = logging.getLogger(__name__)

IMPORT_COLUMNS = [
    "PrimerApellido", "SegundoApellido", "PrimerNombre", "SegundoNombre", "NombreDelGrado",
]
FIELD_SEPARATOR = ";"
REPLACEMENT_CHAR = "\ufffd"
UTF16_BOMS = (codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
UNKNOWN_GRADE_LABEL = "N/A"


class ImportPlan(BaseModel):
    students: List[Student] = Field(default_factory=list)
    skipped_duplicates: int = 0
    skipped_unresolved: int = 0
    unresolved_grade_names: List[str] = Field(default_factory=list)


class ImportResult(BaseModel):
    inserted: int = 0
    skipped_duplicates: int = 0
    skipped_unresolved: int = 0
    rejected: int = 0
    unresolved_grade_names: List[str] = Field(default_factory=list)
    students: List[Student] = Field(default_factory=list)


# ── Decoding ────────────────────────────────────────────────────────

def _decode(raw: bytes, encoding: str) -> str:
    try:
        return raw.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise DecodeError(f"Could not decode the file as {encoding}: {e}")


def decode_upload(raw: bytes, fallback_encoding: str = IMPORT_FALLBACK_ENCODING) -> str:
    """
    Decode uploaded bytes. A UTF-16 BOM selects UTF-16. Otherwise UTF-8 first
    (a BOM is dropped); if that produces replacement characters, re-decode the
    raw bytes with the legacy encoding.

    Text carrying control characters other than tab, CR and LF is refused: it
    means the bytes were not text in any of these encodings (e.g. UTF-16
    without a BOM).
    """
    if raw.startswith(UTF16_BOMS):
        text = _decode(raw, "utf-16")
    else:
        text = raw.decode("utf-8-sig", errors="replace")
        if REPLACEMENT_CHAR in text:
            logger.info("Upload is not valid UTF-8, retrying as %s", fallback_encoding)
            text = _decode(raw, fallback_encoding)

    if CONTROL_CHARS.search(text):
        raise DecodeError("The file contains control characters; save it as UTF-8 or Windows-1252 text.")
    return text


def split_lines(text: str, sentinel: str = IMPORT_TRAILER_SENTINEL) -> List[str]:
    """Non-blank lines, trailer lines removed."""
    return [
        line for line in re.split(r"[\r\n]+", text)
        if line.strip() and not (sentinel and line.startswith(sentinel))
    ]


# ── Normalization ───────────────────────────────────────────────────

def normalize_grade_name(name: Optional[str]) -> str:
    """'  Sexto° ' -> 'sexto', 'Transición' -> 'transicion'."""
    if not name:
        return ""
    text = unicodedata.normalize("NFD", name.strip().lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return re.sub(r"[°º]", "", text)


def assemble_full_name(last1: str, last2: str, first1: str, first2: str) -> str:
    """First names then last names, skipping empty parts."""
    parts = [p.strip() for p in (first1, first2, last1, last2) if p and p.strip()]
    return " ".join(parts).strip()


def _student_key(name: str, grade_level_id: Optional[str]) -> str:
    return f"{name.strip().lower()}|{grade_level_id}"


# ── Planning ────────────────────────────────────────────────────────

def _rows_frame(lines: Sequence[str]) -> pd.DataFrame:
    width = len(IMPORT_COLUMNS)
    # Quoted fields may hold the separator; exports quote them that way.
    rows = [
        (next(csv.reader([line.strip()], delimiter=FIELD_SEPARATOR), []) + [""] * width)[:width]
        for line in lines
    ]
    df = pd.DataFrame(rows, columns=IMPORT_COLUMNS, dtype=str)
    for col in IMPORT_COLUMNS:
        df[col] = df[col].str.strip()
    return df


def plan_student_import(
    text: str,
    grade_levels: Sequence[GradeLevel],
    existing_students: Sequence[Student],
    target_grade_level_id: Optional[str] = None,
) -> ImportPlan:
    """
    Work out what an import would insert. Pure: nothing is written.

    Rows with no name parts are dropped silently. When target_grade_level_id
    is given, every row goes to that grade and the grade column is ignored.
    """
    lines = split_lines(text)
    if len(lines) <= 1:
        raise ValidationError("The CSV file is empty or only contains the header.")

    df = _rows_frame(lines[1:])
    df["full_name"] = [
        assemble_full_name(r.PrimerApellido, r.SegundoApellido, r.PrimerNombre, r.SegundoNombre)
        for r in df.itertuples(index=False)
    ]
    df = df[df["full_name"] != ""].copy()

    # ── Grade resolution ───────────────────────────────────────────
    if target_grade_level_id:
        df["grade_level_id"] = target_grade_level_id
    else:
        grade_map: Dict[str, str] = {normalize_grade_name(gl.name): gl.id for gl in grade_levels}
        df["grade_level_id"] = df["NombreDelGrado"].map(
            lambda name: grade_map.get(normalize_grade_name(name))
        )

    unresolved_mask = df["grade_level_id"].isna()
    unresolved = df[unresolved_mask]
    unresolved_names = list(dict.fromkeys(n for n in unresolved["NombreDelGrado"] if n))
    df = df[~unresolved_mask].copy()

    # ── Deduplication ──────────────────────────────────────────────
    existing_keys = {_student_key(s.name, s.grade_level_id) for s in existing_students}
    df["key"] = [_student_key(n, g) for n, g in zip(df["full_name"], df["grade_level_id"])]
    duplicate_mask = df["key"].isin(existing_keys) | df["key"].duplicated(keep="first")
    to_insert = df[~duplicate_mask]

    return ImportPlan(
        students=[
            Student(name=name, grade_level_id=gid)
            for name, gid in zip(to_insert["full_name"], to_insert["grade_level_id"])
        ],
        skipped_duplicates=int(duplicate_mask.sum()),
        skipped_unresolved=len(unresolved),
        unresolved_grade_names=unresolved_names,
    )


# ── Running ─────────────────────────────────────────────────────────

def import_students(
    store: RecordStore,
    raw: bytes,
    target_grade_level_id: Optional[str] = None,
) -> ImportResult:
    """Decode, plan and bulk-insert one uploaded student file."""
    text = decode_upload(raw)

    grade_levels = store.get_grade_levels()
    if target_grade_level_id and target_grade_level_id not in {gl.id for gl in grade_levels}:
        raise NotFoundError(f"Grade level {target_grade_level_id!r} not found.")

    plan = plan_student_import(text, grade_levels, store.get_students(), target_grade_level_id)

    inserted: List[Student] = []
    if plan.students:
        inserted = store.bulk_insert_students(plan.students)

    result = ImportResult(
        inserted=len(inserted),
        skipped_duplicates=plan.skipped_duplicates,
        skipped_unresolved=plan.skipped_unresolved,
        rejected=len(plan.students) - len(inserted),
        unresolved_grade_names=plan.unresolved_grade_names,
        students=inserted,
    )
    logger.info("Student import: %s", format_import_summary(result))
    return result


def format_import_summary(result: ImportResult, max_examples: int = IMPORT_UNRESOLVED_EXAMPLES) -> str:
    """e.g. "12 imported, 3 duplicates skipped, 2 unresolved grades: '6-A', '7B'"."""
    parts = [f"{result.inserted} imported"]
    if result.skipped_duplicates:
        parts.append(f"{result.skipped_duplicates} duplicates skipped")
    if result.rejected:
        parts.append(f"{result.rejected} rejected by the store")
    if result.skipped_unresolved:
        names = result.unresolved_grade_names
        examples = ", ".join(f"'{n}'" for n in names[:max_examples])
        if len(names) > max_examples:
            examples += ", ..."
        label = f"{result.skipped_unresolved} unresolved grades"
        parts.append(f"{label}: {examples}" if examples else label)
    return ", ".join(parts)


# ── Export ──────────────────────────────────────────────────────────

def split_full_name(full_name: str) -> Dict[str, str]:
    """
    Break a stored full name back into the four import columns.
    1 token: first; 2: first + last; 3: first, last1, last2;
    4+: first1, first2, last1, remaining tokens as last2.
    """
    tokens = full_name.split()
    fields = {"PrimerApellido": "", "SegundoApellido": "", "PrimerNombre": "", "SegundoNombre": ""}
    if len(tokens) == 1:
        fields["PrimerNombre"] = tokens[0]
    elif len(tokens) == 2:
        fields["PrimerNombre"], fields["PrimerApellido"] = tokens
    elif len(tokens) == 3:
        fields["PrimerNombre"], fields["PrimerApellido"], fields["SegundoApellido"] = tokens
    elif len(tokens) >= 4:
        fields["PrimerNombre"] = tokens[0]
        fields["SegundoNombre"] = tokens[1]
        fields["PrimerApellido"] = tokens[2]
        fields["SegundoApellido"] = " ".join(tokens[3:])
    return fields


def export_students_csv(students: Sequence[Student], grade_levels: Sequence[GradeLevel]) -> str:
    """CSV text in the import layout, prefixed with a UTF-8 BOM for spreadsheet apps."""
    names = {gl.id: gl.name for gl in grade_levels}
    records = []
    for student in students:
        row = split_full_name(student.name)
        row["NombreDelGrado"] = names.get(student.grade_level_id, UNKNOWN_GRADE_LABEL)
        records.append(row)

    df = pd.DataFrame(records, columns=IMPORT_COLUMNS)
    return "\ufeff" + df.to_csv(sep=FIELD_SEPARATOR, index=False, lineterminator="\n")
