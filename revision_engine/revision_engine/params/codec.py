"""String encoding of a :class:`ParameterSet` for flat key/value boundaries.

Process bootstrap only carries string-typed settings (environment variables),
so the scheduler command encodes the merged parameters into one string and the
server decodes it back.  The two functions are a pair:
``decode_params(encode_params(p)) == p`` for every parameter set, including
key order.
"""

from __future__ import annotations

import json

from revision_engine.errors import ConfigParseError
from revision_engine.params.parameter_set import ParameterSet


def encode_params(params: ParameterSet) -> str:
    """Encode *params* as a compact JSON object string (insertion order kept)."""
    return json.dumps(params.to_dict(), ensure_ascii=False, separators=(",", ":"), allow_nan=False)


def decode_params(encoded: str) -> ParameterSet:
    """Decode a string produced by :func:`encode_params`.

    An empty string decodes to an empty set.

    Raises
    ------
    ConfigParseError
        If *encoded* is not a JSON object.
    """
    if not encoded.strip():
        return ParameterSet()
    try:
        data = json.loads(encoded)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"Invalid encoded parameters: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigParseError(f"Encoded parameters must be a JSON object, got {type(data).__name__}.")
    try:
        return ParameterSet(data)
    except (TypeError, ValueError) as exc:
        raise ConfigParseError(f"Invalid encoded parameters: {exc}") from exc
