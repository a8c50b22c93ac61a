"""
Database engine normalization and version parsing.

Cost Explorer, the reservation APIs and the RDS inventory APIs all spell
engines differently ("Aurora PostgreSQL", "aurora-postgresql", "postgres").
Everything that compares engines goes through normalize_engine_name so the
filter, reconciliation and extended-support stages agree on one token.
"""

import re
from typing import Optional


ENGINE_ALIASES = {
    # Cost Explorer labels
    "aurora postgresql": "aurora-postgresql",
    "aurora mysql": "aurora-mysql",
    "mysql": "mysql",
    "postgresql": "postgresql",
    "mariadb": "mariadb",
    "oracle": "oracle",
    "sql server": "sqlserver",
    # Reservation / RDS API identifiers
    "aurora-postgresql": "aurora-postgresql",
    "aurora-mysql": "aurora-mysql",
    "aurora": "aurora-mysql",
    "postgres": "postgresql",
    "oracle-se": "oracle",
    "oracle-se1": "oracle",
    "oracle-se2": "oracle",
    "oracle-ee": "oracle",
    "oracle-se2-cdb": "oracle",
    "oracle-ee-cdb": "oracle",
    "sqlserver-se": "sqlserver",
    "sqlserver-ee": "sqlserver",
    "sqlserver-ex": "sqlserver",
    "sqlserver-web": "sqlserver",
    # Cache engines
    "redis": "redis",
    "valkey": "valkey",
    "memcached": "memcached",
}

# Aurora MySQL reports internal versions such as "8.0.mysql_aurora.3.05.2".
# The Aurora major maps to the MySQL major it is compatible with. New Aurora
# majors must be added here after checking the RDS Aurora MySQL release notes.
AURORA_MYSQL_COMPATIBILITY = {
    "1": "5.6",
    "2": "5.7",
    "3": "8.0",
}

POSTGRES_FAMILY = {"postgresql", "aurora-postgresql"}

_AURORA_MYSQL_PATTERN = re.compile(r"mysql_aurora\.(\d+)\.")
_LEADING_DIGITS = re.compile(r"^(\d+)")


def normalize_engine_name(engine: Optional[str]) -> str:
    """Map any provider spelling of an engine onto its canonical token"""
    if not engine:
        return ""

    key = " ".join(engine.strip().lower().split())
    if key in ENGINE_ALIASES:
        return ENGINE_ALIASES[key]

    return key.replace(" ", "-")


def engine_from_description(description: Optional[str]) -> str:
    """Engine from a human readable description, e.g. 'Redis cache.t4g.micro 3x' -> 'redis'"""
    if not description:
        return ""

    tokens = description.split()
    if not tokens:
        return ""

    return normalize_engine_name(tokens[0])


def extract_major_version(engine: str, full_version: str) -> str:
    """
    Derive the major version used by the RDS lifecycle API from a full version string.

    Examples:
        mysql 8.0.35                         -> 8.0
        postgresql 13.7                      -> 13
        postgresql 9.6.22                    -> 9.6
        aurora-mysql 5.7.mysql_aurora.2.11.2 -> 5.7
    """
    if not full_version:
        return ""

    normalized = normalize_engine_name(engine)

    if normalized == "aurora-mysql":
        match = _AURORA_MYSQL_PATTERN.search(full_version)
        if match and match.group(1) in AURORA_MYSQL_COMPATIBILITY:
            return AURORA_MYSQL_COMPATIBILITY[match.group(1)]

    parts = full_version.split(".")
    major = parts[0]

    if normalized in POSTGRES_FAMILY and major.isdigit() and int(major) >= 10:
        return major

    if len(parts) >= 2:
        minor = _LEADING_DIGITS.match(parts[1])
        if minor:
            return f"{major}.{minor.group(1)}"

    return major


def lifecycle_key(engine: str, major_version: str) -> str:
    """Key of the lifecycle map: 'engine:majorVersion'"""
    return f"{normalize_engine_name(engine)}:{major_version}"
