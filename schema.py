from typing import NamedTuple, Dict, List, Optional
import numpy as np

# reserved entries of the word / POS lists (indices 0-2) and the label list (index 0)
UNKNOWN = "-UNKNOWN-"
NULL = "-NULL-"
ROOT = "-ROOT-"

NONEXIST = -1


class Sentence(NamedTuple):
  """a tagged sentence; token i (1-based) is words[i - 1] / pos[i - 1]."""

  words: List[str]
  pos: List[str]

  def __len__(self) -> int:
    return len(self.words)


class DependencyTree(NamedTuple):
  """
  heads / labels indexed by token position.
  position 0 is the ROOT placeholder; real tokens are 1..n.
  """

  heads: List[int]
  labels: List[str]

  @classmethod
  def empty(cls, n: int) -> "DependencyTree":
    return cls(heads=[NONEXIST] * (n + 1), labels=[NULL] * (n + 1))

  @classmethod
  def from_lists(cls, heads: List[int], labels: List[str]) -> "DependencyTree":
    """heads / labels of tokens 1..n, without the ROOT placeholder."""
    return cls(heads=[NONEXIST] + list(heads), labels=[NULL] + list(labels))

  @property
  def n(self) -> int:
    return len(self.heads) - 1

  def set(self, k: int, head: int, label: str) -> None:
    self.heads[k] = head
    self.labels[k] = label

  def get_root(self) -> int:
    for k in range(1, self.n + 1):
      if self.heads[k] == 0:
        return k
    return 0

  def is_single_root(self) -> bool:
    return sum(1 for k in range(1, self.n + 1) if self.heads[k] == 0) == 1

  def is_tree(self) -> bool:
    """every head in range and no cycles."""
    for k in range(1, self.n + 1):
      if self.heads[k] < 0 or self.heads[k] > self.n:
        return False
    for k in range(1, self.n + 1):
      seen = set()
      node = k
      while node > 0:
        if node in seen:
          return False
        seen.add(node)
        node = self.heads[node]
    return True

  def is_projective(self) -> bool:
    """true iff no two arcs cross when drawn over the token order (ROOT at 0)."""
    if not self.is_tree():
      return False
    arcs = [
      (min(k, self.heads[k]), max(k, self.heads[k])) for k in range(1, self.n + 1)
    ]
    for i, j in arcs:
      for k, l in arcs:
        if i < k < j < l:
          return False
    return True


class Transition(NamedTuple):
  """one arc-standard action; kind is "L", "R" or "S"."""

  kind: str
  label: Optional[str] = None

  def __str__(self) -> str:
    if self.kind == "S":
      return "S"
    return f"{self.kind}({self.label})"


SHIFT = Transition("S")


class Dictionary(NamedTuple):
  """
  words, POS tags and labels sharing one contiguous ID space:
  [0, n_words) words, [n_words, n_words + n_pos) POS, the rest labels.
  """

  known_words: List[str]
  known_pos: List[str]
  known_labels: List[str]
  word_ids: Dict[str, int]
  pos_ids: Dict[str, int]
  label_ids: Dict[str, int]

  @classmethod
  def create(
    cls, known_words: List[str], known_pos: List[str], known_labels: List[str]
  ) -> "Dictionary":
    index = 0
    word_ids, pos_ids, label_ids = {}, {}, {}
    for ids, entries in (
      (word_ids, known_words),
      (pos_ids, known_pos),
      (label_ids, known_labels),
    ):
      for entry in entries:
        ids[entry] = index
        index += 1
    return cls(
      list(known_words), list(known_pos), list(known_labels), word_ids, pos_ids, label_ids
    )

  @property
  def size(self) -> int:
    return len(self.known_words) + len(self.known_pos) + len(self.known_labels)

  @property
  def root_label(self) -> str:
    return self.known_labels[1]

  def word_id(self, s: str) -> int:
    # legacy parameter files expect ROOT to share the NULL entry
    if s == ROOT:
      s = NULL
    return self.word_ids.get(s, self.word_ids[UNKNOWN])

  def pos_id(self, s: str) -> int:
    if s == ROOT:
      s = NULL
    return self.pos_ids.get(s, self.pos_ids[UNKNOWN])

  def label_id(self, s: str) -> int:
    return self.label_ids[s]


class Dataset(NamedTuple):
  """training examples: one feature row and one label row per configuration."""

  features: np.ndarray  # shape: (n_examples, n_features)
  labels: np.ndarray  # shape: (n_examples, n_transitions); 1 gold, 0 legal, -1 illegal

  def __len__(self) -> int:
    return self.features.shape[0]
