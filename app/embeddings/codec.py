"""
Text encodings for embedding vectors.

pgvector and the TEXT tier use "[1.0,2.0,3.0]"; PostgreSQL arrays use
"{1.0,2.0,3.0}". The parser accepts both, so the in-process scan can read
any tier's column cast to text.
"""

import math
from typing import List, Sequence


def _join(embedding: Sequence[float]) -> str:
    return ",".join(repr(float(x)) for x in embedding)


def _finite(values: List[float]) -> List[float]:
    for x in values:
        if not math.isfinite(x):
            raise ValueError(f"Non-finite component in vector: {x!r}")
    return values


def format_vector_literal(embedding: Sequence[float]) -> str:
    """pgvector / TEXT tier literal: [x,y,...]"""
    return f"[{_join(embedding)}]"


def format_array_literal(embedding: Sequence[float]) -> str:
    """PostgreSQL array literal: {x,y,...}"""
    return f"{{{_join(embedding)}}}"


def parse_vector_text(raw) -> List[float]:
    """
    Parse a serialized vector back into floats.

    Raises ValueError for anything that is not a bracketed list of finite
    numbers; NaN and infinity are rejected.
    """
    if raw is None:
        raise ValueError("Embedding is NULL")
    if isinstance(raw, (list, tuple)):
        return _finite([float(x) for x in raw])

    value = str(raw).strip()
    if len(value) < 2 or (value[0], value[-1]) not in {("[", "]"), ("{", "}")}:
        raise ValueError(f"Not a bracketed vector: {value[:40]!r}")

    body = value[1:-1].strip()
    if not body:
        return []
    return _finite([float(part) for part in body.split(",")])
