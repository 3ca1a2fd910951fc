"""Ordered rule tables and named vocabularies used by the field extractor.

Every table is evaluated top-to-bottom and the first matching rule wins, so the
order of the entries is part of the behaviour.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Pattern, Sequence, Tuple, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class KeywordRule:
    """Matches when any keyword occurs and every ``required`` keyword occurs."""

    keywords: Tuple[str, ...]
    result: str
    required: Tuple[str, ...] = ()

    def matches(self, normalized: str) -> bool:
        if not any(keyword in normalized for keyword in self.keywords):
            return False
        return all(keyword in normalized for keyword in self.required)


@dataclass(frozen=True)
class PatternRule:
    """Matches when the regular expression finds at least one occurrence."""

    pattern: Pattern[str]
    result: str

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def first_match(rules: Sequence[KeywordRule], text: str, default: T) -> str | T:
    """Return the result of the first rule matching the lower-cased text."""

    normalized = text.lower()
    for rule in rules:
        if rule.matches(normalized):
            return rule.result
    return default


def first_pattern(rules: Sequence[PatternRule], text: str) -> str | None:
    for rule in rules:
        if rule.matches(text):
            return rule.result
    return None


def collect_vocabulary(vocabulary: Sequence[PatternRule], text: str) -> Tuple[str, ...]:
    """Return every vocabulary name whose pattern occurs at least once, deduplicated."""

    found: list[str] = []
    for entry in vocabulary:
        if entry.result not in found and entry.matches(text):
            found.append(entry.result)
    return tuple(found)


SEVERITY_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(("crítico", "critico", "critical", "p1", "p01", "emergencia", "urgente"), "critical"),
    KeywordRule(("alto", "high", "p2", "p02", "grave"), "high"),
    KeywordRule(("medio", "medium", "p3", "p03", "moderado"), "medium"),
)

STATUS_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(
        ("resuelto", "resolved", "cerrado", "closed", "finalizado", "completado", "aceptado"),
        "resolved",
    ),
    KeywordRule(("progreso", "in progress", "en curso", "trabajando", "procesando"), "in_progress"),
)

CATEGORY_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(("incidencia", "inciden"), "Incidencia"),
    KeywordRule(("oncall", "on-call", "on call"), "On-Call"),
    KeywordRule(("acta",), "Acta"),
    KeywordRule(("preventivo",), "Mantenimiento Preventivo", required=("mantenimiento",)),
    KeywordRule(("correctivo",), "Mantenimiento Correctivo", required=("mantenimiento",)),
    KeywordRule(("mantenimiento",), "Mantenimiento"),
    KeywordRule(("mejora", "enhancement"), "Mejora"),
)

SUBCATEGORY_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(("finalización", "finalizacion"), "Finalización"),
    KeywordRule(("puesta en marcha",), "Puesta en Marcha"),
    KeywordRule(("intervención", "intervencion"), "Intervención"),
    KeywordRule(("preventivo",), "Mantenimiento Preventivo", required=("mantenimiento",)),
    KeywordRule(("correctivo",), "Mantenimiento Correctivo", required=("mantenimiento",)),
    KeywordRule(("oncall", "on-call"), "On-Call"),
)

# "prod" also matches "preproducción", so later entries only fire on texts without it.
ENVIRONMENT_RULES: Tuple[KeywordRule, ...] = (
    KeywordRule(("producción", "production", "prod"), "production"),
    KeywordRule(("preproducción", "preproduction", "pre-prod"), "preproduction"),
    KeywordRule(("staging", "preprod"), "staging"),
    KeywordRule(("desarrollo", "development", "dev"), "development"),
    KeywordRule(("testing", "test", "qa"), "testing"),
)

ACTION_RULES: Tuple[PatternRule, ...] = (
    PatternRule(
        re.compile(r"se\s+(soluciona|resuelve|arregla|repara|implementa|programa|realiza|configura)", re.I),
        "solucionado",
    ),
    PatternRule(re.compile(r"queda\s+pendiente", re.I), "pendiente"),
    PatternRule(re.compile(r"se\s+realizan\s+pruebas", re.I), "pruebas realizadas"),
    PatternRule(re.compile(r"se\s+informa", re.I), "informado"),
    PatternRule(re.compile(r"se\s+revisa", re.I), "revisado"),
    PatternRule(re.compile(r"se\s+detecta", re.I), "detectado"),
    PatternRule(re.compile(r"se\s+solicita", re.I), "solicitado"),
    PatternRule(re.compile(r"se\s+recibe\s+una\s+llamada", re.I), "llamada recibida"),
    PatternRule(re.compile(r"se\s+conecta", re.I), "conectado"),
    PatternRule(re.compile(r"se\s+sube\s+el\s+tiempo", re.I), "configuración modificada"),
    PatternRule(re.compile(r"se\s+realiza\s+la\s+programación", re.I), "programación realizada"),
)

SYSTEM_VOCABULARY: Tuple[PatternRule, ...] = (
    PatternRule(re.compile(r"\b(sap|erp)\b", re.I), "SAP"),
    PatternRule(re.compile(r"\b(crm)\b", re.I), "CRM"),
    PatternRule(re.compile(r"\b(database|bbdd|base\s*de\s*datos)\b", re.I), "Database"),
    PatternRule(re.compile(r"\b(servidor|server|host)\b", re.I), "Servidor"),
    PatternRule(re.compile(r"\b(red|network|lan|wan)\b", re.I), "Red"),
    PatternRule(re.compile(r"\b(aplicación|application|app)\b", re.I), "Aplicación"),
    PatternRule(re.compile(r"\b(web|http|https)\b", re.I), "Web"),
    PatternRule(re.compile(r"\b(email|correo|outlook)\b", re.I), "Email"),
    PatternRule(re.compile(r"\b(storage|almacenamiento|disco)\b", re.I), "Storage"),
    PatternRule(re.compile(r"\b(backup|respaldo)\b", re.I), "Backup"),
    PatternRule(re.compile(r"\b(dns|dhcp|ldap)\b", re.I), "Infraestructura"),
    PatternRule(re.compile(r"\b(firewall|seguridad)\b", re.I), "Seguridad"),
    PatternRule(re.compile(r"\b(api|webservice)\b", re.I), "API"),
    PatternRule(re.compile(r"\b(linux|windows|unix)\b", re.I), "SO"),
)

SERVICE_VOCABULARY: Tuple[PatternRule, ...] = (
    PatternRule(re.compile(r"\b(scada)\b", re.I), "SCADA"),
    PatternRule(re.compile(r"\b(plc|automata|autómata)\b", re.I), "PLC"),
    PatternRule(re.compile(r"\b(oracle)\b", re.I), "Oracle"),
    PatternRule(re.compile(r"\b(sql|mysql|postgresql)\b", re.I), "SQL"),
    PatternRule(re.compile(r"\b(ifix|intouch|wincc)\b", re.I), "HMI/SCADA"),
    PatternRule(re.compile(r"\b(mes)\b", re.I), "MES"),
    PatternRule(re.compile(r"\b(erp)\b", re.I), "ERP"),
    PatternRule(re.compile(r"\b(cim)\b", re.I), "CIM"),
)

# Organisations recognised inside a participant's parenthetical; anything else is a role.
KNOWN_ORGANIZATIONS: Tuple[str, ...] = ("hexa ingenieros", "cliente", "client", "soporte", "support")

__all__ = [
    "ACTION_RULES",
    "CATEGORY_RULES",
    "ENVIRONMENT_RULES",
    "KNOWN_ORGANIZATIONS",
    "KeywordRule",
    "PatternRule",
    "SERVICE_VOCABULARY",
    "SEVERITY_RULES",
    "STATUS_RULES",
    "SUBCATEGORY_RULES",
    "SYSTEM_VOCABULARY",
    "collect_vocabulary",
    "first_match",
    "first_pattern",
]
