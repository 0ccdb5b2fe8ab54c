"""Parameter merging and the string codec used across the bootstrap boundary."""

from revision_engine.params.codec import decode_params, encode_params
from revision_engine.params.merger import (
    DEFAULT_PARAM_ENV_PREFIX,
    load_params_file,
    merge_params,
    parse_override,
    system_params_from_env,
)
from revision_engine.params.parameter_set import ParameterSet

__all__ = [
    "DEFAULT_PARAM_ENV_PREFIX",
    "ParameterSet",
    "decode_params",
    "encode_params",
    "load_params_file",
    "merge_params",
    "parse_override",
    "system_params_from_env",
]
