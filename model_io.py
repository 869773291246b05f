import os
import gzip
import logging
from typing import IO, List, Optional, Tuple
import numpy as np

from config import ParserConfig, check_dictionary
from schema import Dictionary
from parser_model import ParserModel
from scorer import Scorer
from features import N_FEATURES

logger = logging.getLogger(__name__)

HEADER_KEYS = (
  "dict",
  "pos",
  "label",
  "embeddingSize",
  "hiddenSize",
  "numTokens",
  "preComputed",
)
KEYS_PER_LINE = 100


class ModelFormatError(ValueError):
  """raised for a corrupt or truncated model file."""


def _open(path: str, mode: str) -> IO[str]:
  if path.endswith(".gz"):
    return gzip.open(path, mode + "t", encoding="utf-8")
  return open(path, mode, encoding="utf-8")


def _format_row(values) -> str:
  return " ".join(repr(float(v)) for v in values)


def write_model_file(
  path: str, dictionary: Dictionary, scorer: Scorer, pre_computed: List[int]
) -> None:
  """
  text model file: header, one embedding line per dictionary entry,
  columns of W1, b1, columns of W2, precomputed keys (100 per line).
  """
  E, W1, b1, W2 = scorer.arrays()
  embed_size = E.shape[1]

  dirname = os.path.dirname(path)
  if dirname:
    os.makedirs(dirname, exist_ok=True)

  with _open(path, "w") as f:
    f.write(f"dict={len(dictionary.known_words)}\n")
    f.write(f"pos={len(dictionary.known_pos)}\n")
    f.write(f"label={len(dictionary.known_labels)}\n")
    f.write(f"embeddingSize={embed_size}\n")
    f.write(f"hiddenSize={b1.shape[0]}\n")
    f.write(f"numTokens={W1.shape[1] // embed_size}\n")
    f.write(f"preComputed={len(pre_computed)}\n")

    index = 0
    for entries in (
      dictionary.known_words,
      dictionary.known_pos,
      dictionary.known_labels,
    ):
      for entry in entries:
        f.write(f"{entry} {_format_row(E[index])}\n")
        index += 1

    for j in range(W1.shape[1]):
      f.write(_format_row(W1[:, j]) + "\n")
    f.write(_format_row(b1) + "\n")
    for j in range(W2.shape[1]):
      f.write(_format_row(W2[:, j]) + "\n")

    for start in range(0, len(pre_computed), KEYS_PER_LINE):
      chunk = pre_computed[start : start + KEYS_PER_LINE]
      f.write(" ".join(str(k) for k in chunk) + "\n")

  logger.info("model written to %s", path)


class _LineReader:
  """line source that reports truncation and bad counts as ModelFormatError."""

  def __init__(self, f: IO[str], path: str):
    self.f = f
    self.path = path
    self.line_no = 0

  def next(self, what: str) -> str:
    line = self.f.readline()
    self.line_no += 1
    if not line:
      raise ModelFormatError(f"{self.path}: truncated while reading {what}")
    return line.rstrip("\n")

  def floats(self, what: str, expected: int) -> np.ndarray:
    sp = self.next(what).split()
    if len(sp) != expected:
      raise ModelFormatError(
        f"{self.path}:{self.line_no}: {what} has {len(sp)} values, expected {expected}"
      )
    try:
      return np.array([float(v) for v in sp], dtype=np.float32)
    except ValueError as e:
      raise ModelFormatError(f"{self.path}:{self.line_no}: {e}") from e


def load_model_file(
  path: str, config: Optional[ParserConfig] = None
) -> Tuple[Dictionary, Scorer, ParserConfig]:
  """
  reads a model file. the returned config carries the sizes stored in the
  file. the precomputation cache is not built here.
  """
  config = config or ParserConfig()
  logger.info("loading model file: %s", path)

  with _open(path, "r") as f:
    reader = _LineReader(f, path)

    header = {}
    for key in HEADER_KEYS:
      line = reader.next(f"header {key}")
      name, sep, value = line.partition("=")
      if not sep or name.strip() != key:
        raise ModelFormatError(
          f"{path}:{reader.line_no}: expected '{key}=<int>', got {line!r}"
        )
      try:
        header[key] = int(value)
      except ValueError as e:
        raise ModelFormatError(f"{path}:{reader.line_no}: {e}") from e
      logger.info("%s=%d", key, header[key])

    n_dict, n_pos, n_label = header["dict"], header["pos"], header["label"]
    embed_size = header["embeddingSize"]
    hidden_size = header["hiddenSize"]
    n_tokens = header["numTokens"]
    n_pre_computed = header["preComputed"]
    if n_label < 2:
      raise ModelFormatError(f"{path}: label={n_label}, need at least 2 labels")
    if n_tokens != N_FEATURES:
      raise ModelFormatError(
        f"{path}: numTokens={n_tokens}, the feature template has {N_FEATURES} slots"
      )

    lists: Tuple[List[str], List[str], List[str]] = ([], [], [])
    E = np.zeros((n_dict + n_pos + n_label, embed_size), dtype=np.float32)
    index = 0
    for entries, count, what in zip(
      lists, (n_dict, n_pos, n_label), ("word", "POS", "label")
    ):
      for _ in range(count):
        sp = reader.next(f"{what} embedding").split(" ")
        if len(sp) != embed_size + 1:
          raise ModelFormatError(
            f"{path}:{reader.line_no}: {what} line has {len(sp) - 1} values, "
            f"expected {embed_size}"
          )
        entries.append(sp[0])
        try:
          E[index] = [float(v) for v in sp[1:]]
        except ValueError as e:
          raise ModelFormatError(f"{path}:{reader.line_no}: {e}") from e
        index += 1

    W1 = np.zeros((hidden_size, embed_size * n_tokens), dtype=np.float32)
    for j in range(W1.shape[1]):
      W1[:, j] = reader.floats("W1 column", hidden_size)

    b1 = reader.floats("b1", hidden_size)

    n_classes = 2 * n_label - 1
    W2 = np.zeros((n_classes, hidden_size), dtype=np.float32)
    for j in range(hidden_size):
      W2[:, j] = reader.floats("W2 column", n_classes)

    pre_computed: List[int] = []
    while len(pre_computed) < n_pre_computed:
      try:
        pre_computed.extend(int(k) for k in reader.next("precomputed keys").split())
      except ValueError as e:
        raise ModelFormatError(f"{path}:{reader.line_no}: {e}") from e
    if len(pre_computed) != n_pre_computed:
      raise ModelFormatError(
        f"{path}: found {len(pre_computed)} precomputed keys, "
        f"expected {n_pre_computed}"
      )

  dictionary = Dictionary.create(*lists)
  try:
    check_dictionary(dictionary)
  except ValueError as e:
    raise ModelFormatError(f"{path}: {e}") from e

  config = config._replace(
    embed_size=embed_size, hidden_size=hidden_size, n_features=n_tokens
  )
  model = ParserModel(
    vocab_size=dictionary.size,
    n_features=n_tokens,
    embed_size=embed_size,
    hidden_size=hidden_size,
    n_classes=n_classes,
    init_range=config.init_range,
  )
  scorer = Scorer.from_arrays(model, E, W1, b1, W2, pre_computed)
  return dictionary, scorer, config
