import os
import logging
from typing import NamedTuple, Tuple
from dotenv import load_dotenv
from schema import Dictionary, UNKNOWN, NULL, ROOT

logger = logging.getLogger(__name__)

ENV_PREFIX = "NNDEP_"
PUNCTUATION_TAGS = ("``", "''", ".", ",", ":")


class ParserConfig(NamedTuple):
  """hyperparameters of the parser, its network and its training loop."""

  n_features: int = 48
  embed_size: int = 50
  hidden_size: int = 200
  init_range: float = 0.01

  # adagrad
  learning_rate: float = 0.01
  ada_eps: float = 1e-6

  l2_weight: float = 1e-8
  dropout_rate: float = 0.5
  batch_size: int = 10000
  max_iter: int = 20000
  eval_per_iter: int = 100

  n_pre_computed: int = 100000
  word_cutoff: int = 1
  single_root: bool = True
  punctuation_tags: Tuple[str, ...] = PUNCTUATION_TAGS
  seed: int = 0


def _parse_value(raw: str, default):
  if isinstance(default, bool):
    return raw.strip().lower() in ("1", "true", "yes", "on")
  if isinstance(default, tuple):
    return tuple(tok for tok in raw.split(",") if tok)
  return type(default)(raw)


def load_config(**overrides) -> ParserConfig:
  """
  builds a ParserConfig from defaults, then NNDEP_<FIELD> environment
  variables (a .env file is honoured), then explicit keyword overrides.
  """
  load_dotenv()
  defaults = ParserConfig()
  values = {}
  for field in ParserConfig._fields:
    raw = os.getenv(ENV_PREFIX + field.upper())
    if raw is not None:
      values[field] = _parse_value(raw, getattr(defaults, field))
      logger.debug("config %s=%r from environment", field, values[field])
  values.update(overrides)
  return defaults._replace(**values)


def check_dictionary(dictionary: Dictionary) -> None:
  """validates the reserved entries the feature template relies on."""
  reserved = [UNKNOWN, NULL, ROOT]
  if dictionary.known_words[:3] != reserved:
    raise ValueError(
      f"word list must start with {reserved}, got {dictionary.known_words[:3]}"
    )
  if dictionary.known_pos[:3] != reserved:
    raise ValueError(
      f"POS list must start with {reserved}, got {dictionary.known_pos[:3]}"
    )
  if len(dictionary.known_labels) < 2 or dictionary.known_labels[0] != NULL:
    raise ValueError(
      f"label list must start with {NULL} followed by the root label, "
      f"got {dictionary.known_labels[:2]}"
    )
