"""
Mapeo de headers de la hoja -> campos canónicos.

Este es el punto recomendado para ajustar qué nombres de columna acepta el
sync. Las claves de HEADER_ALIASES ya están normalizadas (ver normalize_header).

Política de esquema permisiva: un header sin alias no se descarta, pasa como
nombre snake_case y queda en StudentRecord.extra.
"""

from __future__ import annotations

import re
from typing import Iterable

from .types import CanonicalHeaderIndex

# Campo fuente del que se deriva "department" (texto libre de clase/sección).
CLASS_SOURCE_FIELD = "department"

HEADER_ALIASES: dict[str, str] = {
    # register_no
    "register no": "register_no",
    "register number": "register_no",
    "registration number": "register_no",
    "registration no": "register_no",
    "reg no": "register_no",
    "roll no": "register_no",
    # name
    "name": "name",
    "student name": "name",
    "full name": "name",
    # padres
    "father name": "father_name",
    "fathers name": "father_name",
    "father's name": "father_name",
    "mother name": "mother_name",
    "mothers name": "mother_name",
    "mother's name": "mother_name",
    # address
    "address": "address",
    "residential address": "address",
    # clase / sección -> department
    "class": CLASS_SOURCE_FIELD,
    "class section": CLASS_SOURCE_FIELD,
    "section": CLASS_SOURCE_FIELD,
    "department": CLASS_SOURCE_FIELD,
    "dept": CLASS_SOURCE_FIELD,
    # year
    "year": "year",
    "year of study": "year",
    "current year": "year",
    # email
    "email": "email",
    "email id": "email",
    "email address": "email",
    "mail id": "email",
    # asistencia
    "overall attendance percentage": "attendance_percentage",
    "attendance percentage": "attendance_percentage",
    "attendance %": "attendance_percentage",
    "attendance": "attendance_percentage",
    "present to class (today)": "present_today",
    "present today": "present_today",
    "present": "present_today",
    "leave taken": "leave_taken",
    "leave": "leave_taken",
    "leaves": "leave_taken",
    # resultados
    "result percentage": "result_percentage",
    "result %": "result_percentage",
    # teléfonos
    "student number": "phone_number",
    "phone number": "phone_number",
    "phone": "phone_number",
    "mobile number": "phone_number",
    "parents number": "parents_number",
    "parent number": "parents_number",
    "parents phone": "parents_number",
    # datos personales
    "blood group": "blood_group",
    "hostel": "hostel",
    "hosteller": "hostel",
    "dob": "dob",
    "date of birth": "dob",
    "profile image url": "profile_image_url",
    "profile image": "profile_image_url",
    "photo url": "profile_image_url",
    # institucional
    "displinary action": "disciplinary_action",
    "disciplinary action": "disciplinary_action",
    "year of passing": "year_of_passing",
    "passing year": "year_of_passing",
    "mentor": "mentor",
    "mentor name": "mentor",
}

_SEPARATORS = re.compile(r"[_-]")
_WHITESPACE = re.compile(r"\s+")


def normalize_header(name: object) -> str:
    """
    Normaliza un header para buscarlo en HEADER_ALIASES:
    minúsculas, '_'/'-' -> espacio, espacios colapsados, trim.
    """
    text = str(name if name is not None else "").lower()
    text = _SEPARATORS.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def canonical_field_for(header: object) -> str:
    """Campo canónico del header, o su forma snake_case si no tiene alias."""
    norm = normalize_header(header)
    return HEADER_ALIASES.get(norm) or _WHITESPACE.sub("_", norm)


def build_header_index(headers: Iterable[object]) -> CanonicalHeaderIndex:
    """
    Construye {campo -> posición de columna}.

    Si dos columnas resuelven al mismo campo, gana la de más a la derecha.
    Headers vacíos se ignoran.
    """
    index: CanonicalHeaderIndex = {}
    for pos, header in enumerate(headers):
        mapped = canonical_field_for(header)
        if not mapped:
            continue
        index[mapped] = pos
    return index
